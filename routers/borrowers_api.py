from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import crud
from dependencies import get_db
from errors import NotFoundError, ValidationError
from models import Borrower, BorrowerIn, BorrowerUpdate, Message

router = APIRouter()


@router.get("/borrowers", response_model=list[Borrower])
def list_borrowers_api(
    q: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return crud.list_borrowers(db, q=q or None)


@router.post("/borrowers", response_model=Borrower, status_code=201)
def create_borrower_api(
    body: BorrowerIn,
    db: Session = Depends(get_db),
):
    return crud.create_borrower(db, body)


@router.post("/borrowers/bulk", response_model=list[Borrower], status_code=201)
def bulk_create_borrowers_api(
    body: list[BorrowerIn],
    db: Session = Depends(get_db),
):
    if not body:
        raise ValidationError("at least one borrower is required")
    return crud.bulk_create_borrowers(db, body)


@router.get("/borrowers/{borrower_id}", response_model=Borrower)
def get_borrower_api(
    borrower_id: int,
    db: Session = Depends(get_db),
):
    borrower = crud.get_borrower(db, borrower_id)
    if not borrower:
        raise NotFoundError("Borrower not found")
    return borrower


@router.patch("/borrowers/{borrower_id}", response_model=Borrower)
def update_borrower_api(
    borrower_id: int,
    body: BorrowerUpdate,
    db: Session = Depends(get_db),
):
    return crud.update_borrower(db, borrower_id, body)


@router.delete("/borrowers/{borrower_id}", response_model=Message)
def delete_borrower_api(
    borrower_id: int,
    db: Session = Depends(get_db),
):
    crud.delete_borrower(db, borrower_id)
    return Message(message="Borrower deleted successfully")
