from __future__ import annotations

from datetime import datetime, timezone

from typing import Optional

from sqlalchemy import select, delete, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from errors import ConflictError, NotFoundError, ValidationError
from models import Asset, AssetIn, AssetUpdate, Borrower, BorrowerIn, BorrowerUpdate
from orm import AssetORM, BorrowerORM, LoanORM

ALLOWED_SORTS = {
    "asset_tag": AssetORM.asset_tag,
    "name": AssetORM.name,
    "status": AssetORM.status,
    "category": AssetORM.category,
    "created_at": AssetORM.created_at,
    "updated_at": AssetORM.updated_at,
}

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def persist(db: Session, *, commit: bool) -> None:
    if commit:
        db.commit()
    else:
        db.flush()

def persist_unique(db: Session, *, commit: bool, conflict: str) -> None:
    """persist(), turning a unique constraint violation into ConflictError."""
    try:
        persist(db, commit=commit)
    except IntegrityError:
        db.rollback()
        raise ConflictError(conflict)

def _asset_to_schema(a: AssetORM) -> Asset:
    return Asset.model_validate(a)

def _borrower_to_schema(b: BorrowerORM) -> Borrower:
    return Borrower.model_validate(b)

def _blank_to_none(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


# ---------- Asset ----------
def asset_tag_exists(db: Session, asset_tag: str, exclude_asset_id: Optional[int] = None) -> bool:
    stmt = select(AssetORM).where(AssetORM.asset_tag == asset_tag)
    if exclude_asset_id:
        stmt = stmt.where(AssetORM.id != exclude_asset_id)
    return db.execute(stmt).first() is not None


def get_asset(db: Session, asset_id: int) -> Optional[Asset]:
    row = db.get(AssetORM, asset_id)
    return _asset_to_schema(row) if row else None


def get_asset_by_tag(db: Session, asset_tag: str) -> Optional[Asset]:
    row = db.execute(select(AssetORM).where(AssetORM.asset_tag == asset_tag)).scalar_one_or_none()
    return _asset_to_schema(row) if row else None


def create_asset(db: Session, body: AssetIn, *, commit: bool = True) -> Asset:
    asset_tag = body.asset_tag.strip()
    if asset_tag_exists(db, asset_tag):
        raise ConflictError(f'asset_tag "{asset_tag}" already exists')

    now = utcnow()
    a = AssetORM(
        name=body.name.strip(),
        asset_tag=asset_tag,
        description=_blank_to_none(body.description),
        category=body.category,
        status=body.status,
        image_url=_blank_to_none(body.image_url),
        created_at=now,
        updated_at=now,
    )
    db.add(a)
    persist_unique(db, commit=commit, conflict=f'asset_tag "{asset_tag}" already exists')
    if commit:
        db.refresh(a)
    return _asset_to_schema(a)


def update_asset(db: Session, asset_id: int, body: AssetUpdate, *, commit: bool = True) -> Asset:
    a = db.get(AssetORM, asset_id)
    if not a:
        raise NotFoundError("asset not found")

    data = body.model_dump(exclude_unset=True)
    if data.get("asset_tag"):
        data["asset_tag"] = data["asset_tag"].strip()
        if not data["asset_tag"]:
            raise ValidationError("asset_tag must not be blank")
        if asset_tag_exists(db, data["asset_tag"], exclude_asset_id=asset_id):
            raise ConflictError(f'asset_tag "{data["asset_tag"]}" already exists')

    # explicit nulls are only meaningful for the optional columns
    for k, v in data.items():
        if v is None and k not in ("description", "image_url"):
            continue
        setattr(a, k, v)

    a.updated_at = utcnow()

    persist_unique(db, commit=commit, conflict=f'asset_tag "{a.asset_tag}" already exists')
    if commit:
        db.refresh(a)
    return _asset_to_schema(a)


def count_asset_loans(db: Session, asset_id: int) -> int:
    stmt = select(func.count()).select_from(LoanORM).where(LoanORM.asset_id == asset_id)
    return int(db.execute(stmt).scalar_one())


def delete_asset(db: Session, asset_id: int, *, commit: bool = True) -> None:
    a = db.get(AssetORM, asset_id)
    if not a:
        raise NotFoundError("asset not found")

    if count_asset_loans(db, asset_id) > 0:
        raise ConflictError(
            f'Cannot delete asset "{a.name}" ({a.asset_tag}): it has borrowing records. Delete the records first.'
        )

    db.execute(delete(AssetORM).where(AssetORM.id == asset_id))
    persist(db, commit=commit)


def build_assets_query(q: str | None, status: str | None, category: str | None):
    stmt = select(AssetORM)

    if q:
        like = f"%{q}%"
        stmt = stmt.where(
            or_(
                AssetORM.name.ilike(like),
                AssetORM.asset_tag.ilike(like),
                AssetORM.description.ilike(like),
            )
        )
    if status:
        stmt = stmt.where(AssetORM.status == status)

    if category:
        stmt = stmt.where(AssetORM.category == category)

    return stmt

def assets_meta(
    db: Session,
    *,
    q: str | None,
    status: str | None,
    category: str | None,
    limit: int,
    offset: int,
) -> dict:
    if limit < 1:
        limit = 1
    if limit > 500:
        limit = 500
    if offset < 0:
        offset = 0

    total = count_assets_filtered(db, q=q, status=status, category=category)
    total_pages = max(1, (total + limit - 1) // limit)

    return {
        "total": total,
        "limit": limit,
        "offset": offset,
        "total_pages": total_pages,
    }

def count_assets_filtered(db: Session, *, q: str | None, status: str | None, category: str | None) -> int:
    stmt = build_assets_query(q, status, category)
    count_stmt = select(func.count()).select_from(stmt.subquery())
    return int(db.execute(count_stmt).scalar_one())

def list_assets_filtered(
    db: Session,
    *,
    q: str | None,
    status: str | None,
    category: str | None,
    sort: str,
    order: str,
    limit: int,
    offset: int,
) -> list[Asset]:
    stmt = build_assets_query(q, status, category)

    col = ALLOWED_SORTS.get(sort, AssetORM.asset_tag)
    desc = (order or "").lower() == "desc"
    stmt = stmt.order_by(col.desc() if desc else col.asc(), AssetORM.id.asc())

    stmt = stmt.limit(limit).offset(offset)
    rows = db.execute(stmt).scalars().all()
    return [_asset_to_schema(a) for a in rows]


# ---------- Borrower ----------
def email_exists(db: Session, email: str, exclude_borrower_id: Optional[int] = None) -> bool:
    stmt = select(BorrowerORM).where(BorrowerORM.contact_email == email)
    if exclude_borrower_id:
        stmt = stmt.where(BorrowerORM.id != exclude_borrower_id)
    return db.execute(stmt).first() is not None


def get_borrower(db: Session, borrower_id: int) -> Optional[Borrower]:
    row = db.get(BorrowerORM, borrower_id)
    return _borrower_to_schema(row) if row else None


def list_borrowers(db: Session, *, q: str | None = None) -> list[Borrower]:
    stmt = select(BorrowerORM)
    if q:
        like = f"%{q}%"
        stmt = stmt.where(
            or_(
                BorrowerORM.full_name.ilike(like),
                BorrowerORM.department.ilike(like),
                BorrowerORM.contact_email.ilike(like),
            )
        )
    stmt = stmt.order_by(BorrowerORM.created_at.desc(), BorrowerORM.id.desc())
    return [_borrower_to_schema(b) for b in db.execute(stmt).scalars().all()]


def create_borrower(db: Session, body: BorrowerIn, *, commit: bool = True) -> Borrower:
    full_name = body.full_name.strip()
    department = body.department.strip()
    if not full_name or not department:
        raise ValidationError("full_name and department are required")

    email = _blank_to_none(body.contact_email)
    if email and email_exists(db, email):
        raise ConflictError(f'Borrower with email "{email}" already exists.')

    now = utcnow()
    b = BorrowerORM(
        full_name=full_name,
        department=department,
        contact_email=email,
        contact_phone=_blank_to_none(body.contact_phone),
        created_at=now,
        updated_at=now,
    )
    db.add(b)
    persist_unique(db, commit=commit, conflict=f'Borrower with email "{email}" already exists.')
    if commit:
        db.refresh(b)
    return _borrower_to_schema(b)


def bulk_create_borrowers(db: Session, bodies: list[BorrowerIn]) -> list[Borrower]:
    """Create every borrower or none of them."""
    created: list[Borrower] = []
    try:
        for body in bodies:
            created.append(create_borrower(db, body, commit=False))
        db.commit()
    except Exception:
        db.rollback()
        raise
    return created


def update_borrower(db: Session, borrower_id: int, body: BorrowerUpdate, *, commit: bool = True) -> Borrower:
    b = db.get(BorrowerORM, borrower_id)
    if not b:
        raise NotFoundError("Borrower not found")

    data = body.model_dump(exclude_unset=True)
    if "contact_email" in data:
        data["contact_email"] = _blank_to_none(data["contact_email"])
        email = data["contact_email"]
        if email and email_exists(db, email, exclude_borrower_id=borrower_id):
            raise ConflictError(f'Borrower with email "{email}" already exists.')
    if "contact_phone" in data:
        data["contact_phone"] = _blank_to_none(data["contact_phone"])

    for k, v in data.items():
        if v is None and k in ("full_name", "department"):
            continue
        setattr(b, k, v)

    b.updated_at = utcnow()

    persist_unique(db, commit=commit, conflict=f'Borrower with email "{b.contact_email}" already exists.')
    if commit:
        db.refresh(b)
    return _borrower_to_schema(b)


def count_borrower_loans(db: Session, borrower_id: int) -> int:
    stmt = select(func.count()).select_from(LoanORM).where(LoanORM.borrower_id == borrower_id)
    return int(db.execute(stmt).scalar_one())


def delete_borrower(db: Session, borrower_id: int, *, commit: bool = True) -> None:
    b = db.get(BorrowerORM, borrower_id)
    if not b:
        raise NotFoundError("Borrower not found")

    if count_borrower_loans(db, borrower_id) > 0:
        raise ConflictError(
            "Cannot delete borrower: They have associated borrowing records. Delete records first."
        )

    db.execute(delete(BorrowerORM).where(BorrowerORM.id == borrower_id))
    persist(db, commit=commit)
