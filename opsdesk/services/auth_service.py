"""
Authentication service: login and logout.

Successful logins and logouts are audited against the user who
performed them. Failed logins have no verified actor, so they are
only logged.
"""

import logging

from sqlalchemy.orm import Session

from opsdesk.errors import UnauthorizedError
from opsdesk.models.enums import AuditAction, ResourceType
from opsdesk.models.user import User
from opsdesk.schemas.auth import Claims
from opsdesk.security import create_access_token
from opsdesk.services.audit_service import AuditRecorder
from opsdesk.services.user_service import UserService

logger = logging.getLogger(__name__)


def claims_for(user: User) -> Claims:
    return Claims(user_id=user.id, email=user.email, name=user.name)


class AuthService:

    def __init__(self, db: Session, audit: AuditRecorder | None = None):
        self.db = db
        self.audit = audit or AuditRecorder(db)
        self.user_service = UserService(db, self.audit)

    def login(self, email: str, password: str) -> tuple[str, User]:
        """Check credentials and issue an access token."""
        user = self.user_service.authenticate(email, password)
        if not user:
            logger.warning(
                "Failed login for %s from %s", email, self.audit.client.ip_address
            )
            raise UnauthorizedError("Invalid email or password")

        claims = claims_for(user)
        token = create_access_token(
            {"sub": str(user.id), "email": user.email, "name": user.name}
        )
        self.audit.record(
            claims, AuditAction.LOGIN, ResourceType.USER, user.id, {"email": user.email}
        )
        logger.info("User %s logged in", user.id)
        return token, user

    def logout(self, claims: Claims) -> None:
        # Tokens are stateless; logout only leaves a trace in the audit log.
        self.audit.record(
            claims, AuditAction.LOGOUT, ResourceType.USER, claims.user_id, {"email": claims.email}
        )
        logger.info("User %s logged out", claims.user_id)
