"""
Shared FastAPI dependencies: identity, permissions, request metadata.
"""

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from opsdesk.errors import OpsDeskError
from opsdesk.models.base import get_db
from opsdesk.models.user import User
from opsdesk.schemas.auth import Claims, ClientMeta
from opsdesk.security import decode_access_token
from opsdesk.services.audit_service import AuditRecorder
from opsdesk.services.authorization import Authorizer

bearer_scheme = HTTPBearer(auto_error=False)


def http_error(e: OpsDeskError) -> HTTPException:
    """Translate a service error into the HTTP response FastAPI sends."""
    headers = {"WWW-Authenticate": "Bearer"} if e.status_code == 401 else None
    return HTTPException(status_code=e.status_code, detail=e.message, headers=headers)


def get_client_meta(request: Request) -> ClientMeta:
    """IP address and user agent of the caller, for audit records."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip()
    else:
        ip_address = request.client.host if request.client else None
    user_agent = request.headers.get("user-agent")
    return ClientMeta(
        ip_address=ip_address[:45] if ip_address else None,
        user_agent=user_agent[:255] if user_agent else None,
    )


def get_current_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Claims:
    """
    Resolve the bearer token to the caller's identity.

    The user is re-read on every request so that deactivation and
    deletion take effect before the token expires.
    """
    if credentials is None:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(credentials.credentials)
    if payload is None or not str(payload.get("sub", "")).isdigit():
        raise HTTPException(
            status_code=401,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.get(User, int(payload["sub"]))
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=401,
            detail="User is inactive or no longer exists",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Claims(user_id=user.id, email=user.email, name=user.name)


def get_authorizer(db: Session = Depends(get_db)) -> Authorizer:
    return Authorizer(db)


def get_audit_recorder(
    db: Session = Depends(get_db),
    client: ClientMeta = Depends(get_client_meta),
) -> AuditRecorder:
    return AuditRecorder(db, client)


def require_permission(resource: str, action: str):
    """
    Dependency factory: the caller must hold resource:action.

        @router.delete("/{role_id}")
        def delete_role(claims: Claims = Depends(require_permission("role", "delete"))):
            ...
    """
    def checker(
        claims: Claims = Depends(get_current_claims),
        authorizer: Authorizer = Depends(get_authorizer),
    ) -> Claims:
        try:
            authorizer.require(claims, resource, action)
        except OpsDeskError as e:
            raise http_error(e)
        return claims

    return checker
