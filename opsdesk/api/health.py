"""
Health check endpoint.

Used by load balancers and monitoring to check that the service
is up and can reach its database.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from opsdesk.config import get_settings
from opsdesk.models.base import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Report application health including database connectivity.

    A failing database check degrades the status instead of
    failing the request, so monitors can tell the two apart.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError:
        logger.warning("Health check could not reach the database", exc_info=True)
        db_status = "unhealthy"

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "service": "opsdesk",
        "version": get_settings().APP_VERSION,
        "database": db_status,
    }
