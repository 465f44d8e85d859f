from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.exc import SQLAlchemyError

from pathlib import Path
import logging
import os
import time

from db import Base, ROOT_DIR, engine
from errors import AppError
from routers import ALL_ROUTERS

import orm  # noqa: F401  (registers tables on Base.metadata)

# -----------------------
# Logging
# -----------------------
logging.basicConfig(
    level=os.getenv("APP_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("app")

TEMPLATES_DIR = Path(os.getenv("APP_TEMPLATES_DIR") or ROOT_DIR / "templates")

app = FastAPI(title="Equipment Lending API")
app.state.templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

Base.metadata.create_all(bind=engine)

for router in ALL_ROUTERS:
    app.include_router(router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    elapsed_ms = int((time.time() - start) * 1000)
    logger.info(
        "method=%s path=%s status=%s elapsed_ms=%s",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


# -----------------------
# Errors
# -----------------------
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "validation", "detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("storage error: method=%s path=%s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "internal", "detail": "storage error, the request can be retried"},
    )


@app.get("/")
def root():
    return {"message": "Equipment Lending API", "docs": "/docs", "ui": "/ui/assets"}
