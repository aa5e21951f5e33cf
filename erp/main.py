import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from erp.config import Settings, get_settings
from erp.core.errors import (
    ConflictError,
    ErpError,
    ImmutableLedgerError,
    InsufficientStockError,
    InvalidInputError,
    NotFoundError,
    TransactionFailureError,
)
from erp.core.logging import setup_logging
from erp.database import init_db
from erp.routers import health_router, inventory_router, invoices_router, products_router

logger = logging.getLogger(__name__)

ERROR_STATUS = (
    (NotFoundError, 404),
    (InsufficientStockError, 400),
    (InvalidInputError, 422),
    (ConflictError, 409),
    (ImmutableLedgerError, 409),
    (TransactionFailureError, 503),
)


def status_for_error(exc: ErpError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


setup_logging()
settings: Settings = get_settings()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_db()
    logger.info("%s started (%s)", settings.APP_NAME, settings.ENVIRONMENT)
    yield


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)


@app.exception_handler(ErpError)
async def handle_erp_error(request: Request, exc: ErpError):
    status_code = status_for_error(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


app.include_router(health_router)
app.include_router(inventory_router)
app.include_router(products_router)
app.include_router(invoices_router)


__all__ = ["app", "status_for_error"]
