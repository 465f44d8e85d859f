import csv
import io
from datetime import datetime
from typing import Iterable, Any, Sequence, Callable, Optional
from fastapi.responses import StreamingResponse

Column = tuple[str, Callable[[Any], str]]


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _attr(name: str) -> Callable[[Any], str]:
    return lambda obj: _text(getattr(obj, name, None))


def _nested(parent: str, name: str) -> Callable[[Any], str]:
    return lambda obj: _text(getattr(getattr(obj, parent, None), name, None))


ASSET_COLUMNS: Sequence[Column] = [
    ("id", _attr("id")),
    ("asset_tag", _attr("asset_tag")),
    ("name", _attr("name")),
    ("category", _attr("category")),
    ("status", _attr("status")),
    ("description", _attr("description")),
    ("image_url", _attr("image_url")),
    ("updated_at", _attr("updated_at")),
]

LOAN_COLUMNS: Sequence[Column] = [
    ("id", _attr("id")),
    ("asset_tag", _nested("asset", "asset_tag")),
    ("asset_name", _nested("asset", "name")),
    ("borrower", _nested("borrower", "full_name")),
    ("department", _nested("borrower", "department")),
    ("borrowed_at", _attr("borrowed_at")),
    # empty while the loan is outstanding
    ("returned_at", _attr("returned_at")),
    ("state", _attr("state")),
    ("notes", _attr("notes")),
]


def rows_to_csv_response(
    rows: Iterable[Any],
    *,
    filename: str,
    columns: Sequence[Column],
) -> StreamingResponse:
    """
    Stream rows (anything with attribute access: ORM rows or pydantic
    models) as a CSV download.
    """

    def generate():
        buf = io.StringIO()
        w = csv.writer(buf)

        w.writerow([h for h, _ in columns])
        yield buf.getvalue()
        buf.seek(0)
        buf.truncate(0)

        for row in rows:
            w.writerow([getter(row) for _, getter in columns])
            yield buf.getvalue()
            buf.seek(0)
            buf.truncate(0)

    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return StreamingResponse(generate(), media_type="text/csv; charset=utf-8", headers=headers)


def assets_to_csv_response(assets: Iterable[Any], *, filename: str = "assets_export.csv") -> StreamingResponse:
    return rows_to_csv_response(assets, filename=filename, columns=ASSET_COLUMNS)


def loans_to_csv_response(
    loans: Iterable[Any],
    *,
    filename: Optional[str] = None,
) -> StreamingResponse:
    if filename is None:
        filename = f"loans_{datetime.now().strftime('%Y-%m-%d')}.csv"
    return rows_to_csv_response(loans, filename=filename, columns=LOAN_COLUMNS)
