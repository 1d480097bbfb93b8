"""
Role API endpoints, including a role's permission bindings.
"""

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from opsdesk.api.deps import get_audit_recorder, http_error, require_permission
from opsdesk.config import get_settings
from opsdesk.errors import OpsDeskError
from opsdesk.models.base import get_db
from opsdesk.schemas.auth import Claims
from opsdesk.schemas.common import Page
from opsdesk.schemas.permission import PermissionBrief, PermissionIds
from opsdesk.schemas.role import RoleCreate, RoleUpdate, RoleResponse, RoleDetails
from opsdesk.services.audit_service import AuditRecorder
from opsdesk.services.permission_service import PermissionService
from opsdesk.services.role_service import RoleService

router = APIRouter(prefix="/roles", tags=["Roles"])

settings = get_settings()


@router.post("", response_model=RoleResponse, status_code=201)
def create_role(
    request: RoleCreate,
    claims: Claims = Depends(require_permission("role", "create")),
    db: Session = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    """Create a role with an optional initial set of permissions."""
    service = RoleService(db, audit)
    try:
        role = service.create_role(claims, request)
        db.commit()
        return role
    except OpsDeskError as e:
        db.rollback()
        raise http_error(e)


@router.get("", response_model=Page[RoleResponse])
def list_roles(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    name: str | None = None,
    claims: Claims = Depends(require_permission("role", "read")),
    db: Session = Depends(get_db),
):
    items, total = RoleService(db).list_roles(page, page_size, name)
    return Page[RoleResponse](
        items=[RoleResponse.model_validate(r) for r in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{role_id}", response_model=RoleDetails)
def get_role(
    role_id: int,
    claims: Claims = Depends(require_permission("role", "read")),
    db: Session = Depends(get_db),
):
    """Role details with its permissions and the number of users holding it."""
    try:
        return RoleService(db).get_role(role_id)
    except OpsDeskError as e:
        raise http_error(e)


@router.put("/{role_id}", response_model=RoleResponse)
def update_role(
    role_id: int,
    request: RoleUpdate,
    claims: Claims = Depends(require_permission("role", "update")),
    db: Session = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    """
    Update a role.

    Sending permission_ids replaces the role's whole permission set.
    """
    service = RoleService(db, audit)
    try:
        role = service.update_role(claims, role_id, request)
        db.commit()
        return role
    except OpsDeskError as e:
        db.rollback()
        raise http_error(e)


@router.delete("/{role_id}", status_code=204)
def delete_role(
    role_id: int,
    claims: Claims = Depends(require_permission("role", "delete")),
    db: Session = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    """Delete a role. Fails with 409 while any user holds it."""
    service = RoleService(db, audit)
    try:
        service.delete_role(claims, role_id)
        db.commit()
    except OpsDeskError as e:
        db.rollback()
        raise http_error(e)
    return Response(status_code=204)


# --- Permission bindings ---

@router.get("/{role_id}/permissions", response_model=list[PermissionBrief])
def get_role_permissions(
    role_id: int,
    claims: Claims = Depends(require_permission("role", "read")),
    db: Session = Depends(get_db),
):
    try:
        return PermissionService(db).get_permissions_for_role(role_id)
    except OpsDeskError as e:
        raise http_error(e)


@router.post("/{role_id}/permissions", response_model=RoleResponse)
def add_role_permissions(
    role_id: int,
    request: PermissionIds,
    claims: Claims = Depends(require_permission("role", "update")),
    db: Session = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    """Grant permissions to a role. Permissions it already has are skipped."""
    service = PermissionService(db, audit)
    try:
        role = service.add_permissions_to_role(claims, role_id, request.permission_ids)
        db.commit()
        return role
    except OpsDeskError as e:
        db.rollback()
        raise http_error(e)


@router.delete("/{role_id}/permissions", response_model=RoleResponse)
def remove_role_permissions(
    role_id: int,
    request: PermissionIds,
    claims: Claims = Depends(require_permission("role", "update")),
    db: Session = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    """Revoke permissions from a role. Permissions it does not have are skipped."""
    service = PermissionService(db, audit)
    try:
        role = service.remove_permissions_from_role(claims, role_id, request.permission_ids)
        db.commit()
        return role
    except OpsDeskError as e:
        db.rollback()
        raise http_error(e)
