"""
OpsDesk access core: FastAPI application.

This is the entry point for the application; run it with
`opsdesk` or `python -m opsdesk.main`.
All routers are registered here.
"""

import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from opsdesk.config import get_settings
from opsdesk.errors import InternalError, OpsDeskError
from opsdesk.logging_config import configure_logging
from opsdesk.api.health import router as health_router
from opsdesk.api.auth import router as auth_router
from opsdesk.api.roles import router as roles_router
from opsdesk.api.permissions import router as permissions_router
from opsdesk.api.users import router as users_router
from opsdesk.api.audit_logs import router as audit_logs_router
from opsdesk.api.businesses import router as businesses_router

settings = get_settings()

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Role-based access control and audit trail for IT operations",
)


@app.exception_handler(OpsDeskError)
def handle_service_error(request: Request, exc: OpsDeskError):
    # Endpoints translate their own errors; this catches the rest.
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(IntegrityError)
def handle_integrity_error(request: Request, exc: IntegrityError):
    # A concurrent request won a uniqueness race after our own checks passed.
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=409,
        content={"detail": "The request conflicts with existing data"},
    )


@app.exception_handler(SQLAlchemyError)
def handle_storage_error(request: Request, exc: SQLAlchemyError):
    logger.error(
        "Storage error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return handle_service_error(request, InternalError("A storage error occurred"))


@app.exception_handler(Exception)
def handle_unexpected_error(request: Request, exc: Exception):
    logger.error(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return handle_service_error(request, InternalError("Internal server error"))


# Register routers
API_PREFIX = "/api/v1"

app.include_router(health_router)
app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(roles_router, prefix=API_PREFIX)
app.include_router(permissions_router, prefix=API_PREFIX)
app.include_router(users_router, prefix=API_PREFIX)
app.include_router(audit_logs_router, prefix=API_PREFIX)
app.include_router(businesses_router, prefix=API_PREFIX)


def run() -> None:
    """Serve the API with uvicorn. Installed as the `opsdesk` command."""
    uvicorn.run(
        "opsdesk.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    run()
