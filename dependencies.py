from collections.abc import Generator

from fastapi import Request
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from db import SessionLocal


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_templates(request: Request) -> Jinja2Templates:
    return request.app.state.templates
