from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from src.core.config import get_settings
from src.core.exceptions import (
    AuthorizationError,
    ConflictError,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from src.core.logging_config import setup_logging
from src.routers.health import router as health_router
from src.routers.reports import router as reports_router
from src.routers.restaurants import router as restaurants_router
from src.routers.sales import router as sales_router
from src.routers.sync import router as sync_router

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title=get_settings().APP_NAME,
    description="Unified sales ledger API - POS ingestion, categorization, splits and reconciliation reports for restaurants.",
    version="0.1.0",
)

ERROR_STATUS_CODES = {
    ValidationError: 400,
    AuthorizationError: 403,
    NotFoundError: 404,
    ConflictError: 409,
}


@app.exception_handler(LedgerError)
async def ledger_exception_handler(request: Request, exc: LedgerError):
    """Map domain errors onto HTTP status codes with a structured body."""
    status_code = next(
        (code for error_cls, code in ERROR_STATUS_CODES.items() if isinstance(exc, error_cls)),
        500,
    )
    if status_code == 500:
        logger.error(f"Unmapped ledger error: {exc.message}", exc_info=exc)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "The ledger could not complete the request.",
            "request_id": request.headers.get("X-Request-ID"),
        }
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(restaurants_router, prefix="/api")
app.include_router(sales_router, prefix="/api")
app.include_router(reports_router, prefix="/api")
app.include_router(sync_router, prefix="/api")


@app.get("/")
def read_root():
    return {
        "message": "Welcome to the Unified Sales Ledger API",
        "docs": "/docs",
        "health": "/health",
    }
