from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError as SchemaError
from sqlalchemy.orm import Session

import crud
from dependencies import get_db, get_templates
from errors import AppError
from models import BorrowerIn
from routers.redirects import see_other

router = APIRouter()


@router.get("/ui/borrowers", response_class=HTMLResponse)
def borrowers_ui(
    request: Request,
    q: Optional[str] = None,
    error: Optional[str] = None,
    db: Session = Depends(get_db),
    templates: Jinja2Templates = Depends(get_templates),
):
    borrowers = crud.list_borrowers(db, q=q or None)
    return templates.TemplateResponse(
        request,
        "borrowers.html",
        {"borrowers": borrowers, "q": q or "", "error": error},
    )


@router.post("/ui/borrowers")
def create_borrower_ui(
    full_name: str = Form(...),
    department: str = Form(...),
    contact_email: Optional[str] = Form(None),
    contact_phone: Optional[str] = Form(None),
    db: Session = Depends(get_db),
):
    try:
        body = BorrowerIn(
            full_name=full_name,
            department=department,
            contact_email=contact_email,
            contact_phone=contact_phone,
        )
        crud.create_borrower(db, body)
    except SchemaError:
        return see_other("/ui/borrowers", error="full_name and department are required")
    except AppError as e:
        return see_other("/ui/borrowers", error=e.message)
    return see_other("/ui/borrowers")


@router.post("/ui/borrowers/{borrower_id}/delete")
def delete_borrower_ui(
    borrower_id: int,
    db: Session = Depends(get_db),
):
    try:
        crud.delete_borrower(db, borrower_id)
    except AppError as e:
        return see_other("/ui/borrowers", error=e.message)
    return see_other("/ui/borrowers")
