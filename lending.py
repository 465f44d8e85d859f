"""
Borrow/return lifecycle.

Every write to a loan goes through this module, and this module is the only
code that moves an asset between "available" and "loaned". Each operation is
one unit of work on the caller's session: the asset row is locked
(SELECT ... FOR UPDATE) before its loans are inspected, and nothing is
committed unless every write succeeded.

commit=False leaves the unit open (flushed, not committed) so callers can
compose it with other writes; rolling back is then the caller's job.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy import select, func
from sqlalchemy.orm import Session, selectinload

from crud import persist, utcnow
from errors import ConflictError, NotFoundError
from models import (
    LOAN_BORROWED,
    LOAN_RETURNED,
    STATUS_AVAILABLE,
    STATUS_LOANED,
    LoanCreate,
    LoanDetail,
    LoanUpdate,
)
from orm import AssetORM, BorrowerORM, LoanORM

logger = logging.getLogger(__name__)


@contextmanager
def _unit_of_work(db: Session, *, commit: bool) -> Iterator[None]:
    try:
        yield
        persist(db, commit=commit)
    except Exception:
        if commit:
            db.rollback()
        raise


def _loan_to_schema(loan: LoanORM) -> LoanDetail:
    return LoanDetail.model_validate(loan)


def _lock_asset(db: Session, asset_id: int) -> Optional[AssetORM]:
    stmt = select(AssetORM).where(AssetORM.id == asset_id).with_for_update()
    return db.execute(stmt).scalar_one_or_none()


def _set_asset_status(asset: AssetORM, status: str, now: datetime) -> None:
    if asset.status != status:
        logger.info("asset_id=%s asset_tag=%s status %s -> %s", asset.id, asset.asset_tag, asset.status, status)
    asset.status = status
    asset.updated_at = now


def count_active_loans(db: Session, asset_id: int, *, exclude_loan_id: Optional[int] = None) -> int:
    stmt = (
        select(func.count())
        .select_from(LoanORM)
        .where(LoanORM.asset_id == asset_id, LoanORM.state == LOAN_BORROWED)
    )
    if exclude_loan_id is not None:
        stmt = stmt.where(LoanORM.id != exclude_loan_id)
    return int(db.execute(stmt).scalar_one())


# ---------- read ----------
def _loans_query():
    return select(LoanORM).options(selectinload(LoanORM.asset), selectinload(LoanORM.borrower))


def get_loan(db: Session, loan_id: int) -> Optional[LoanDetail]:
    row = db.execute(_loans_query().where(LoanORM.id == loan_id)).scalar_one_or_none()
    return _loan_to_schema(row) if row else None


def get_active_loan(db: Session, asset_id: int) -> Optional[LoanDetail]:
    stmt = (
        _loans_query()
        .where(LoanORM.asset_id == asset_id, LoanORM.state == LOAN_BORROWED)
        .order_by(LoanORM.borrowed_at.desc(), LoanORM.id.desc())
        .limit(1)
    )
    row = db.execute(stmt).scalars().first()
    return _loan_to_schema(row) if row else None


def list_loans(
    db: Session,
    *,
    asset_id: Optional[int] = None,
    borrower_id: Optional[int] = None,
    state: Optional[str] = None,
) -> list[LoanDetail]:
    """Loans, most recent borrow first."""
    stmt = _loans_query()
    if asset_id is not None:
        stmt = stmt.where(LoanORM.asset_id == asset_id)
    if borrower_id is not None:
        stmt = stmt.where(LoanORM.borrower_id == borrower_id)
    if state:
        stmt = stmt.where(LoanORM.state == state)
    stmt = stmt.order_by(LoanORM.borrowed_at.desc(), LoanORM.id.desc())
    return [_loan_to_schema(l) for l in db.execute(stmt).scalars().all()]


# ---------- write ----------
def create_loan(db: Session, body: LoanCreate, *, commit: bool = True) -> LoanDetail:
    """
    Record a borrow: insert an active loan and mark the asset "loaned".

    Raises NotFoundError when the asset or borrower does not exist and
    ConflictError when the asset is already out on loan. The asset is
    checked first, so a loaned asset is a conflict whatever the borrower.
    """
    with _unit_of_work(db, commit=commit):
        asset = _lock_asset(db, body.asset_id)
        if asset is None:
            raise NotFoundError("Asset not found")

        if asset.status == STATUS_LOANED or count_active_loans(db, asset.id) > 0:
            logger.warning("loan rejected: asset_id=%s asset_tag=%s already borrowed", asset.id, asset.asset_tag)
            raise ConflictError(f'Asset "{asset.name}" (ID: {asset.asset_tag}) is already borrowed.')

        borrower = db.get(BorrowerORM, body.borrower_id)
        if borrower is None:
            raise NotFoundError("Borrower not found")

        now = utcnow()
        loan = LoanORM(
            asset=asset,
            borrower=borrower,
            borrowed_at=now,
            returned_at=body.expected_return_at,
            state=LOAN_BORROWED,
            notes=body.notes,
            created_at=now,
            updated_at=now,
        )
        db.add(loan)
        _set_asset_status(asset, STATUS_LOANED, now)
        db.flush()
        logger.info("loan created: loan_id=%s asset_id=%s borrower_id=%s", loan.id, asset.id, borrower.id)

    return _loan_to_schema(loan)


def update_loan(db: Session, loan_id: int, body: LoanUpdate, *, commit: bool = True) -> LoanDetail:
    """
    Apply a partial update to a loan.

    borrowed -> returned frees the asset and stamps returned_at (now unless
    given). returned -> borrowed puts the asset back on loan and clears
    returned_at, whatever value was sent with it. An unchanged state never
    touches the asset.
    """
    with _unit_of_work(db, commit=commit):
        loan = db.get(LoanORM, loan_id, with_for_update=True)
        if loan is None:
            raise NotFoundError("Borrowing record not found")

        data = body.model_dump(exclude_unset=True)
        new_state = data.get("state")
        returned_at = data.get("returned_at")
        now = utcnow()

        if "notes" in data:
            loan.notes = data["notes"]

        if new_state == LOAN_RETURNED and loan.state != LOAN_RETURNED:
            asset = _lock_asset(db, loan.asset_id)
            loan.state = LOAN_RETURNED
            loan.returned_at = returned_at or now
            if asset is not None:
                _set_asset_status(asset, STATUS_AVAILABLE, now)
            logger.info("loan returned: loan_id=%s asset_id=%s", loan.id, loan.asset_id)

        elif new_state == LOAN_BORROWED and loan.state != LOAN_BORROWED:
            asset = _lock_asset(db, loan.asset_id)
            if count_active_loans(db, loan.asset_id, exclude_loan_id=loan.id) > 0:
                label = f'"{asset.name}" (ID: {asset.asset_tag})' if asset is not None else f"id={loan.asset_id}"
                logger.warning("loan reactivation rejected: loan_id=%s asset_id=%s", loan.id, loan.asset_id)
                raise ConflictError(f"Asset {label} is already borrowed under another record.")
            loan.state = LOAN_BORROWED
            loan.returned_at = None
            if asset is not None:
                _set_asset_status(asset, STATUS_LOANED, now)
            logger.info("loan reactivated: loan_id=%s asset_id=%s", loan.id, loan.asset_id)

        elif returned_at is not None:
            loan.returned_at = returned_at

        loan.updated_at = now
        db.flush()

    return _loan_to_schema(loan)


def delete_loan(db: Session, loan_id: int, *, commit: bool = True) -> None:
    """
    Delete a loan. Deleting an active loan frees the asset only when no other
    active loan for the same asset is left.
    """
    with _unit_of_work(db, commit=commit):
        loan = db.get(LoanORM, loan_id, with_for_update=True)
        if loan is None:
            raise NotFoundError("Borrowing record not found")

        asset_id = loan.asset_id
        was_active = loan.state == LOAN_BORROWED
        asset = _lock_asset(db, asset_id) if was_active else None

        db.delete(loan)
        db.flush()
        logger.info("loan deleted: loan_id=%s asset_id=%s was_active=%s", loan_id, asset_id, was_active)

        if asset is not None:
            remaining = count_active_loans(db, asset_id, exclude_loan_id=loan_id)
            if remaining == 0:
                _set_asset_status(asset, STATUS_AVAILABLE, utcnow())
            else:
                logger.warning("asset_id=%s still has %s active loan(s); status left as is", asset_id, remaining)
