"""
Permission catalog API endpoints.
"""

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from opsdesk.api.deps import get_audit_recorder, http_error, require_permission
from opsdesk.config import get_settings
from opsdesk.errors import OpsDeskError
from opsdesk.models.base import get_db
from opsdesk.schemas.auth import Claims
from opsdesk.schemas.common import Page
from opsdesk.schemas.permission import (
    PermissionCreate,
    PermissionUpdate,
    PermissionResponse,
)
from opsdesk.services.audit_service import AuditRecorder
from opsdesk.services.permission_service import PermissionService

router = APIRouter(prefix="/permissions", tags=["Permissions"])

settings = get_settings()


@router.post("", response_model=PermissionResponse, status_code=201)
def create_permission(
    request: PermissionCreate,
    claims: Claims = Depends(require_permission("permission", "create")),
    db: Session = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    service = PermissionService(db, audit)
    try:
        permission = service.create_permission(claims, request)
        db.commit()
        return permission
    except OpsDeskError as e:
        db.rollback()
        raise http_error(e)


@router.get("", response_model=Page[PermissionResponse])
def list_permissions(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    name: str | None = None,
    resource: str | None = None,
    action: str | None = None,
    claims: Claims = Depends(require_permission("permission", "read")),
    db: Session = Depends(get_db),
):
    items, total = PermissionService(db).list_permissions(
        page, page_size, name=name, resource=resource, action=action
    )
    return Page[PermissionResponse](
        items=[PermissionResponse.model_validate(p) for p in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{permission_id}", response_model=PermissionResponse)
def get_permission(
    permission_id: int,
    claims: Claims = Depends(require_permission("permission", "read")),
    db: Session = Depends(get_db),
):
    try:
        return PermissionService(db).get_permission(permission_id)
    except OpsDeskError as e:
        raise http_error(e)


@router.put("/{permission_id}", response_model=PermissionResponse)
def update_permission(
    permission_id: int,
    request: PermissionUpdate,
    claims: Claims = Depends(require_permission("permission", "update")),
    db: Session = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    service = PermissionService(db, audit)
    try:
        permission = service.update_permission(claims, permission_id, request)
        db.commit()
        return permission
    except OpsDeskError as e:
        db.rollback()
        raise http_error(e)


@router.delete("/{permission_id}", status_code=204)
def delete_permission(
    permission_id: int,
    claims: Claims = Depends(require_permission("permission", "delete")),
    db: Session = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    """
    Delete a permission.

    Roles that grant it lose it, unless the deployment blocks
    deleting permissions that are still in use.
    """
    service = PermissionService(db, audit)
    try:
        service.delete_permission(claims, permission_id)
        db.commit()
    except OpsDeskError as e:
        db.rollback()
        raise http_error(e)
    return Response(status_code=204)
