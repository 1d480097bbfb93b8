"""
Audit log API endpoints. Read-only: records are only ever
written by the services as a side effect of a change.
"""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError
from sqlalchemy.orm import Session

from opsdesk.api.deps import http_error, require_permission
from opsdesk.config import get_settings
from opsdesk.errors import OpsDeskError
from opsdesk.models.base import get_db
from opsdesk.models.enums import AuditAction
from opsdesk.schemas.audit import AuditLogQuery, AuditLogResponse, ChainVerification
from opsdesk.schemas.auth import Claims
from opsdesk.schemas.common import Page
from opsdesk.services.audit_service import AuditRecorder

router = APIRouter(prefix="/audit-logs", tags=["Audit Logs"])

settings = get_settings()


@router.get("", response_model=Page[AuditLogResponse])
def list_audit_logs(
    user_id: int | None = None,
    action: AuditAction | None = None,
    resource: str | None = None,
    resource_id: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    claims: Claims = Depends(require_permission("audit_log", "read")),
    db: Session = Depends(get_db),
):
    """
    Search the audit trail, newest first.

    end_date is inclusive: records from any time on that day match.
    """
    try:
        params = AuditLogQuery(
            user_id=user_id,
            action=action,
            resource=resource,
            resource_id=resource_id,
            start_date=start_date,
            end_date=end_date,
            page=page,
            page_size=page_size,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors()[0]["msg"])

    items, total = AuditRecorder(db).query(params)
    return Page[AuditLogResponse](
        items=[AuditLogResponse.model_validate(entry) for entry in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/verify", response_model=ChainVerification)
def verify_audit_chain(
    claims: Claims = Depends(require_permission("audit_log", "read")),
    db: Session = Depends(get_db),
):
    """Check that no audit record has been altered, removed or inserted."""
    return AuditRecorder(db).verify_chain()


@router.get("/{log_id}", response_model=AuditLogResponse)
def get_audit_log(
    log_id: int,
    claims: Claims = Depends(require_permission("audit_log", "read")),
    db: Session = Depends(get_db),
):
    try:
        return AuditRecorder(db).get_log(log_id)
    except OpsDeskError as e:
        raise http_error(e)
