"""
User API endpoints and role bindings.

Users can always read their own profile and change their own
name and department. Everything else, including their own status
and roles, needs the matching user:* permission.
"""

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from opsdesk.api.deps import (
    get_audit_recorder,
    get_authorizer,
    get_current_claims,
    http_error,
    require_permission,
)
from opsdesk.config import get_settings
from opsdesk.errors import OpsDeskError
from opsdesk.models.base import get_db
from opsdesk.models.enums import UserStatus
from opsdesk.schemas.auth import Claims
from opsdesk.schemas.common import Page
from opsdesk.schemas.user import (
    UserCreate,
    UserUpdate,
    UserResponse,
    RoleAssignment,
    RoleRemoval,
)
from opsdesk.services.audit_service import AuditRecorder
from opsdesk.services.authorization import Authorizer
from opsdesk.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])

settings = get_settings()


def check_profile_access(
    claims: Claims,
    user_id: int,
    action: str,
    authorizer: Authorizer,
    elevated: bool = False,
) -> None:
    """Own profile: allowed unless elevated fields are touched. Anyone else: user:<action>."""
    if claims.user_id == user_id and not elevated:
        return
    authorizer.require(claims, "user", action)


@router.post("", response_model=UserResponse, status_code=201)
def create_user(
    request: UserCreate,
    claims: Claims = Depends(require_permission("user", "create")),
    db: Session = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    service = UserService(db, audit)
    try:
        user = service.create_user(claims, request)
        db.commit()
        return user
    except OpsDeskError as e:
        db.rollback()
        raise http_error(e)


@router.get("", response_model=Page[UserResponse])
def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    name: str | None = None,
    email: str | None = None,
    status: UserStatus | None = None,
    claims: Claims = Depends(require_permission("user", "read")),
    db: Session = Depends(get_db),
):
    items, total = UserService(db).list_users(
        page, page_size, name=name, email=email, status=status
    )
    return Page[UserResponse](
        items=[UserResponse.model_validate(u) for u in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    claims: Claims = Depends(get_current_claims),
    authorizer: Authorizer = Depends(get_authorizer),
    db: Session = Depends(get_db),
):
    try:
        check_profile_access(claims, user_id, "read", authorizer)
        return UserService(db).get_user(user_id)
    except OpsDeskError as e:
        raise http_error(e)


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    request: UserUpdate,
    claims: Claims = Depends(get_current_claims),
    authorizer: Authorizer = Depends(get_authorizer),
    db: Session = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    """
    Update a user.

    role_ids, when sent, replaces the user's roles. Changing
    status or role_ids requires user:update even on your own profile.
    """
    service = UserService(db, audit)
    try:
        check_profile_access(
            claims, user_id, "update", authorizer,
            elevated=request.touches_elevated_fields(),
        )
        user = service.update_user(claims, user_id, request)
        db.commit()
        return user
    except OpsDeskError as e:
        db.rollback()
        raise http_error(e)


@router.delete("/{user_id}", status_code=204)
def delete_user(
    user_id: int,
    claims: Claims = Depends(require_permission("user", "delete")),
    db: Session = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    """Soft-delete a user. Their roles are removed and their email stays taken."""
    service = UserService(db, audit)
    try:
        service.delete_user(claims, user_id)
        db.commit()
    except OpsDeskError as e:
        db.rollback()
        raise http_error(e)
    return Response(status_code=204)


# --- Role bindings ---

@router.post("/{user_id}/roles", response_model=UserResponse)
def assign_roles(
    user_id: int,
    request: RoleAssignment,
    claims: Claims = Depends(require_permission("user", "update")),
    db: Session = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    """
    Assign roles to a user.

    mode=replace sets the user's roles to exactly role_ids;
    mode=add keeps the current roles and adds role_ids.
    """
    service = UserService(db, audit)
    try:
        user = service.assign_roles_to_user(
            claims, user_id, request.role_ids, request.mode
        )
        db.commit()
        return user
    except OpsDeskError as e:
        db.rollback()
        raise http_error(e)


@router.delete("/{user_id}/roles", response_model=UserResponse)
def remove_roles(
    user_id: int,
    request: RoleRemoval,
    claims: Claims = Depends(require_permission("user", "update")),
    db: Session = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    """Remove roles from a user. Roles the user does not hold are ignored."""
    service = UserService(db, audit)
    try:
        user = service.remove_roles_from_user(claims, user_id, request.role_ids)
        db.commit()
        return user
    except OpsDeskError as e:
        db.rollback()
        raise http_error(e)
