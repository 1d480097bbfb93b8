"""
Authorization: does this caller hold this (resource, action)?

A user's grants are the union of the permissions of every role
bound to them. Inactive and deleted users hold nothing.
"""

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from opsdesk.errors import ForbiddenError
from opsdesk.models.associations import role_permissions, user_roles
from opsdesk.models.permission import Permission
from opsdesk.models.user import User
from opsdesk.schemas.auth import Claims

logger = logging.getLogger(__name__)


class Authorizer:
    """
    Permission checks for the lifetime of one request.

    Grants are loaded once per user and kept on the instance, so
    a request that checks several permissions hits the database
    once. Nothing is cached across requests.
    """

    def __init__(self, db: Session):
        self.db = db
        self._grants: dict[int, frozenset[tuple[str, str]]] = {}

    def permissions_for(self, claims: Claims) -> frozenset[tuple[str, str]]:
        if claims.user_id not in self._grants:
            self._grants[claims.user_id] = self._load(claims.user_id)
        return self._grants[claims.user_id]

    def _load(self, user_id: int) -> frozenset[tuple[str, str]]:
        user = self.db.get(User, user_id)
        if user is None or not user.is_active:
            return frozenset()
        rows = self.db.execute(
            select(Permission.resource, Permission.action)
            .join(role_permissions, role_permissions.c.permission_id == Permission.id)
            .join(user_roles, user_roles.c.role_id == role_permissions.c.role_id)
            .where(user_roles.c.user_id == user_id)
            .distinct()
        ).all()
        return frozenset((resource, action) for resource, action in rows)

    def authorize(self, claims: Claims, resource: str, action: str) -> bool:
        pair = (resource.strip().lower(), action.strip().lower())
        allowed = pair in self.permissions_for(claims)
        if not allowed:
            logger.debug("User %s denied %s:%s", claims.user_id, *pair)
        return allowed

    def require(self, claims: Claims, resource: str, action: str) -> None:
        if not self.authorize(claims, resource, action):
            raise ForbiddenError(
                f"Permission denied: {resource.lower()}:{action.lower()} required"
            )
