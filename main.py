import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import get_settings
from db import create_db_and_tables, engine, seed_reference_data
from errors import WasteManagementError
from logger_setup import configure_logging
from routers import auth, citizen, government, operator

logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(title="SmartWaste")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup() -> None:
    configure_logging(settings.log_level)
    create_db_and_tables()
    with Session(engine) as session:
        seed_reference_data(session)
    logger.info("SmartWaste API started (default backend: %s)", "orm" if settings.use_orm else "sql")


def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


@app.exception_handler(WasteManagementError)
def handle_domain_error(request: Request, exc: WasteManagementError):
    return _failure(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
def handle_http_error(request: Request, exc: StarletteHTTPException):
    return _failure(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
def handle_request_validation_error(request: Request, exc: RequestValidationError):
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"] if part != "body")
        problems.append(f"{field}: {error['msg']}" if field else error["msg"])
    return _failure(422, "; ".join(problems))


@app.exception_handler(IntegrityError)
def handle_integrity_error(request: Request, exc: IntegrityError):
    logger.warning("Integrity violation on %s %s: %s", request.method, request.url.path, exc.orig)
    return _failure(400, "The request conflicts with existing data or references a missing record")


@app.exception_handler(Exception)
def handle_unexpected_error(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _failure(500, "An unexpected error occurred")


app.include_router(auth.router, prefix="/api/auth")
app.include_router(citizen.router, prefix="/api/citizen")
app.include_router(operator.router, prefix="/api/operator")
app.include_router(government.router, prefix="/api/government")
