from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import lending
from dependencies import get_db
from errors import NotFoundError
from filter_helpers import normalize_loan_state
from models import LoanCreate, LoanDetail, LoanUpdate, Message

router = APIRouter()


@router.get("/loans", response_model=list[LoanDetail])
def list_loans_api(
    asset_id: Optional[int] = None,
    borrower_id: Optional[int] = None,
    state: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return lending.list_loans(
        db,
        asset_id=asset_id,
        borrower_id=borrower_id,
        state=normalize_loan_state(state),
    )


@router.get("/loans/asset/{asset_id}", response_model=list[LoanDetail])
def list_asset_loans_api(
    asset_id: int,
    db: Session = Depends(get_db),
):
    return lending.list_loans(db, asset_id=asset_id)


@router.get("/loans/borrower/{borrower_id}", response_model=list[LoanDetail])
def list_borrower_loans_api(
    borrower_id: int,
    db: Session = Depends(get_db),
):
    return lending.list_loans(db, borrower_id=borrower_id)


@router.post("/loans", response_model=LoanDetail, status_code=201)
def create_loan_api(
    body: LoanCreate,
    db: Session = Depends(get_db),
):
    return lending.create_loan(db, body)


@router.get("/loans/{loan_id}", response_model=LoanDetail)
def get_loan_api(
    loan_id: int,
    db: Session = Depends(get_db),
):
    loan = lending.get_loan(db, loan_id)
    if not loan:
        raise NotFoundError("Borrowing record not found")
    return loan


@router.api_route("/loans/{loan_id}", methods=["PATCH", "PUT"], response_model=LoanDetail)
def update_loan_api(
    loan_id: int,
    body: LoanUpdate,
    db: Session = Depends(get_db),
):
    return lending.update_loan(db, loan_id, body)


@router.delete("/loans/{loan_id}", response_model=Message)
def delete_loan_api(
    loan_id: int,
    db: Session = Depends(get_db),
):
    lending.delete_loan(db, loan_id)
    return Message(message="Borrowing record deleted successfully")
