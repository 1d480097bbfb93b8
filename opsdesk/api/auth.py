"""
Authentication endpoints.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from opsdesk.api.deps import get_audit_recorder, get_current_claims, http_error
from opsdesk.errors import OpsDeskError
from opsdesk.models.base import get_db
from opsdesk.schemas.auth import Claims, LoginRequest, TokenResponse
from opsdesk.schemas.user import UserResponse
from opsdesk.services.audit_service import AuditRecorder
from opsdesk.services.auth_service import AuthService
from opsdesk.services.user_service import UserService

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/login", response_model=TokenResponse)
def login(
    request: LoginRequest,
    db: Session = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    """Exchange email and password for a bearer token."""
    service = AuthService(db, audit)
    try:
        token, user = service.login(request.email, request.password)
        db.commit()
        return TokenResponse(
            access_token=token, user=UserResponse.model_validate(user)
        )
    except OpsDeskError as e:
        db.rollback()
        raise http_error(e)


@router.post("/logout", status_code=204)
def logout(
    claims: Claims = Depends(get_current_claims),
    db: Session = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    AuthService(db, audit).logout(claims)
    db.commit()
    return Response(status_code=204)


@router.get("/me", response_model=UserResponse)
def me(
    claims: Claims = Depends(get_current_claims),
    db: Session = Depends(get_db),
):
    """The caller's own profile."""
    try:
        return UserService(db).get_user(claims.user_id)
    except OpsDeskError as e:
        raise http_error(e)
