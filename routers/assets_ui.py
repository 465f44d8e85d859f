from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError as SchemaError
from sqlalchemy.orm import Session

import crud
import lending
from csv_utils import assets_to_csv_response
from dependencies import get_db, get_templates
from errors import AppError, NotFoundError
from filter_helpers import (
    VALID_CATEGORIES,
    VALID_STATUSES,
    normalize_category,
    normalize_order,
    normalize_sort,
    normalize_status,
)
from models import AssetIn, AssetUpdate
from routers.redirects import see_other

router = APIRouter()
PAGE_SIZE = 50
EXPORT_LIMIT = 20000


@router.get("/ui/assets", response_class=HTMLResponse)
def assets_ui(
    request: Request,
    q: Optional[str] = None,
    status: Optional[str] = None,
    category: Optional[str] = None,
    sort: str = "asset_tag",
    order: str = "asc",
    page: int = 1,
    error: Optional[str] = None,
    db: Session = Depends(get_db),
    templates: Jinja2Templates = Depends(get_templates),
):
    if page < 1:
        page = 1

    q = q or None
    status = normalize_status(status)
    category = normalize_category(category)
    sort = normalize_sort(sort)
    order = normalize_order(order)

    meta = crud.assets_meta(
        db,
        q=q,
        status=status,
        category=category,
        limit=PAGE_SIZE,
        offset=(page - 1) * PAGE_SIZE,
    )
    total = meta["total"]
    total_pages = meta["total_pages"]
    if page > total_pages:
        page = total_pages

    offset = (page - 1) * PAGE_SIZE
    assets = crud.list_assets_filtered(
        db,
        q=q,
        status=status,
        category=category,
        sort=sort,
        order=order,
        limit=PAGE_SIZE,
        offset=offset,
    )

    active_loans = {}
    for asset in assets:
        active = lending.get_active_loan(db, asset.id)
        if active:
            active_loans[asset.id] = active

    return templates.TemplateResponse(
        request,
        "assets.html",
        {
            "assets": assets,
            "active_loans": active_loans,
            "q": q or "",
            "status": status or "",
            "category": category or "",
            "sort": sort,
            "order": order,
            "page": page,
            "total_pages": total_pages,
            "total": total,
            "page_size": PAGE_SIZE,
            "categories": sorted(VALID_CATEGORIES),
            "statuses": sorted(VALID_STATUSES),
            "error": error,
        },
    )


@router.post("/ui/assets")
def create_asset_ui(
    name: str = Form(...),
    asset_tag: str = Form(...),
    category: str = Form("other"),
    status: str = Form("available"),
    description: Optional[str] = Form(None),
    image_url: Optional[str] = Form(None),
    db: Session = Depends(get_db),
):
    try:
        body = AssetIn(
            name=name,
            asset_tag=asset_tag,
            category=category,  # type: ignore[arg-type]
            status=status,  # type: ignore[arg-type]
            description=description,
            image_url=image_url,
        )
        crud.create_asset(db, body)
    except SchemaError:
        return see_other("/ui/assets", error="invalid asset form")
    except AppError as e:
        return see_other("/ui/assets", error=e.message)
    return see_other("/ui/assets")


@router.get("/ui/assets/export")
def export_assets(
    q: Optional[str] = None,
    status: Optional[str] = None,
    category: Optional[str] = None,
    sort: str = "asset_tag",
    order: str = "asc",
    db: Session = Depends(get_db),
):
    assets = crud.list_assets_filtered(
        db,
        q=q or None,
        status=normalize_status(status),
        category=normalize_category(category),
        sort=normalize_sort(sort),
        order=normalize_order(order),
        limit=EXPORT_LIMIT,
        offset=0,
    )
    return assets_to_csv_response(assets, filename="assets_export.csv")


@router.get("/ui/assets/{asset_id}/edit", response_class=HTMLResponse)
def edit_asset_ui(
    request: Request,
    asset_id: int,
    error: Optional[str] = None,
    db: Session = Depends(get_db),
    templates: Jinja2Templates = Depends(get_templates),
):
    asset = crud.get_asset(db, asset_id)
    if not asset:
        raise NotFoundError("asset not found")

    return templates.TemplateResponse(
        request,
        "asset_edit.html",
        {
            "asset": asset,
            "loans": lending.list_loans(db, asset_id=asset_id),
            "categories": sorted(VALID_CATEGORIES),
            "statuses": sorted(VALID_STATUSES),
            "error": error,
        },
    )


@router.post("/ui/assets/{asset_id}/edit")
def update_asset_ui(
    asset_id: int,
    name: str = Form(...),
    asset_tag: str = Form(...),
    category: str = Form("other"),
    status: str = Form("available"),
    description: Optional[str] = Form(None),
    image_url: Optional[str] = Form(None),
    db: Session = Depends(get_db),
):
    edit_url = f"/ui/assets/{asset_id}/edit"
    try:
        body = AssetUpdate(
            name=name,
            asset_tag=asset_tag,
            category=category,  # type: ignore[arg-type]
            status=status,  # type: ignore[arg-type]
            description=description,
            image_url=image_url,
        )
        crud.update_asset(db, asset_id, body)
    except SchemaError:
        return see_other(edit_url, error="invalid asset form")
    except AppError as e:
        return see_other(edit_url, error=e.message)
    return see_other("/ui/assets")


@router.post("/ui/assets/{asset_id}/delete")
def delete_asset_ui(
    asset_id: int,
    db: Session = Depends(get_db),
):
    try:
        crud.delete_asset(db, asset_id)
    except AppError as e:
        return see_other("/ui/assets", error=e.message)
    return see_other("/ui/assets")
