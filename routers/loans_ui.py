from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError as SchemaError
from sqlalchemy.orm import Session

import crud
import lending
from csv_utils import loans_to_csv_response
from dependencies import get_db, get_templates
from errors import AppError
from filter_helpers import normalize_loan_sort, normalize_loan_state, normalize_order
from models import LOAN_RETURNED, STATUS_AVAILABLE, LoanCreate, LoanUpdate
from routers.redirects import see_other

router = APIRouter()
PICKER_LIMIT = 500


def _sorted_loans(loans, sort: str, order: str):
    reverse = order == "desc"
    if sort == "state":
        # stable sort keeps newest first within each state
        loans = sorted(loans, key=lambda l: l.borrowed_at, reverse=True)
        return sorted(loans, key=lambda l: l.state, reverse=reverse)
    return sorted(loans, key=lambda l: (l.borrowed_at, l.id), reverse=reverse)


@router.get("/ui/loans", response_class=HTMLResponse)
def loans_ui(
    request: Request,
    state: Optional[str] = None,
    sort: str = "borrowed_at",
    order: str = "desc",
    error: Optional[str] = None,
    db: Session = Depends(get_db),
    templates: Jinja2Templates = Depends(get_templates),
):
    state = normalize_loan_state(state)
    sort = normalize_loan_sort(sort)
    order = normalize_order(order)

    loans = _sorted_loans(lending.list_loans(db, state=state), sort, order)

    # only assets that can be borrowed right now go into the form
    available_assets = crud.list_assets_filtered(
        db,
        q=None,
        status=STATUS_AVAILABLE,
        category=None,
        sort="asset_tag",
        order="asc",
        limit=PICKER_LIMIT,
        offset=0,
    )
    borrowers = crud.list_borrowers(db)

    return templates.TemplateResponse(
        request,
        "loans.html",
        {
            "loans": loans,
            "state": state or "",
            "sort": sort,
            "order": order,
            "assets": available_assets,
            "borrowers": borrowers,
            "error": error,
        },
    )


@router.post("/ui/loans")
def create_loan_ui(
    asset_id: int = Form(...),
    borrower_id: int = Form(...),
    expected_return_date: Optional[str] = Form(None),
    notes: Optional[str] = Form(None),
    db: Session = Depends(get_db),
):
    try:
        body = LoanCreate(
            asset_id=asset_id,
            borrower_id=borrower_id,
            expected_return_at=expected_return_date or None,
            notes=notes or None,
        )
        lending.create_loan(db, body)
    except SchemaError:
        return see_other("/ui/loans", error="invalid borrow form")
    except AppError as e:
        return see_other("/ui/loans", error=e.message)
    return see_other("/ui/loans")


@router.post("/ui/loans/{loan_id}/return")
def return_loan_ui(
    loan_id: int,
    db: Session = Depends(get_db),
):
    try:
        lending.update_loan(db, loan_id, LoanUpdate(state=LOAN_RETURNED))
    except AppError as e:
        return see_other("/ui/loans", error=e.message)
    return see_other("/ui/loans")


@router.post("/ui/loans/{loan_id}/delete")
def delete_loan_ui(
    loan_id: int,
    db: Session = Depends(get_db),
):
    try:
        lending.delete_loan(db, loan_id)
    except AppError as e:
        return see_other("/ui/loans", error=e.message)
    return see_other("/ui/loans")


@router.get("/ui/loans/export")
def export_loans(
    state: Optional[str] = None,
    db: Session = Depends(get_db),
):
    loans = lending.list_loans(db, state=normalize_loan_state(state))
    return loans_to_csv_response(loans)
