"""
User service: the identity store and the user-role bindings.

Users are soft-deleted. A deleted user keeps its row and its
email, loses its roles, and disappears from every lookup here.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select

from opsdesk.errors import AlreadyExistsError, ForbiddenError, NotFoundError
from opsdesk.models.enums import AuditAction, BindingMode, ResourceType, UserStatus
from opsdesk.models.role import Role
from opsdesk.models.user import User
from opsdesk.schemas.auth import Claims
from opsdesk.schemas.user import UserCreate, UserUpdate, UserResponse
from opsdesk.security import hash_password, verify_password
from opsdesk.services.base import AuditedService

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService(AuditedService):

    resource_type = ResourceType.USER

    def snapshot(self, user: User) -> dict[str, Any]:
        return UserResponse.model_validate(user).model_dump(mode="json")

    # --- Lookups ---

    def _get_user(self, user_id: int, lock: bool = False) -> User:
        stmt = select(User).where(User.id == user_id, User.deleted_at.is_(None))
        if lock:
            stmt = stmt.with_for_update()
        user = self.db.execute(stmt).scalar_one_or_none()
        if not user:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def get_user(self, user_id: int) -> User:
        return self._get_user(user_id)

    def get_by_email(self, email: str) -> User | None:
        return self.db.execute(
            select(User).where(
                User.email == normalize_email(email), User.deleted_at.is_(None)
            )
        ).scalar_one_or_none()

    def authenticate(self, email: str, password: str) -> User | None:
        """Return the user if the credentials match an active account."""
        user = self.get_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            return None
        if not user.is_active:
            return None
        return user

    def list_users(
        self,
        page: int = 1,
        page_size: int = 10,
        name: str | None = None,
        email: str | None = None,
        status: UserStatus | None = None,
    ) -> tuple[list[User], int]:
        stmt = select(User).where(User.deleted_at.is_(None))
        if name:
            stmt = stmt.where(User.name.icontains(name, autoescape=True))
        if email:
            stmt = stmt.where(User.email.icontains(email, autoescape=True))
        if status is not None:
            stmt = stmt.where(User.status == status)
        stmt = stmt.order_by(User.created_at.desc(), User.id.desc())
        return self._paginate(stmt, page, page_size)

    def resolve_roles(self, role_ids: list[int]) -> list[Role]:
        """Load roles by id. Every id must exist."""
        wanted = set(role_ids)
        if not wanted:
            return []
        found = self.db.execute(
            select(Role).where(Role.id.in_(wanted)).order_by(Role.id)
        ).scalars().all()
        missing = wanted - {r.id for r in found}
        if missing:
            raise NotFoundError(
                f"Roles not found: {sorted(missing)}",
                {"missing_role_ids": sorted(missing)},
            )
        return list(found)

    # --- Identity ---

    def create_user(self, actor: Claims, request: UserCreate) -> User:
        email = normalize_email(request.email)
        # Deleted users keep their email reserved.
        existing = self.db.execute(
            select(User.id).where(User.email == email)
        ).first()
        if existing:
            raise AlreadyExistsError(f"User with email '{email}' already exists")
        roles = self.resolve_roles(request.role_ids)

        def apply() -> User:
            user = User(
                name=request.name,
                email=email,
                password_hash=hash_password(request.password),
                department=request.department,
                status=request.status,
                roles=roles,
            )
            self.db.add(user)
            return user

        user = self._mutation(actor, AuditAction.CREATE, apply)
        logger.info("User %s <%s> created by user %s", user.id, email, actor.user_id)
        return user

    def update_user(self, actor: Claims, user_id: int, request: UserUpdate) -> User:
        """
        Partial update. role_ids, when given, replaces the user's roles.
        """
        user = self._get_user(user_id, lock=True)
        roles = (
            self.resolve_roles(request.role_ids)
            if request.role_ids is not None
            else None
        )

        def apply() -> User:
            if request.name is not None:
                user.name = request.name
            if "department" in request.model_fields_set:
                user.department = request.department
            if request.status is not None:
                user.status = request.status
            if roles is not None:
                self._replace_roles(user, roles)
            user.updated_at = datetime.utcnow()
            return user

        user = self._mutation(actor, AuditAction.UPDATE, apply, pre_image=lambda: user)
        logger.info("User %s updated by user %s", user.id, actor.user_id)
        return user

    def delete_user(self, actor: Claims, user_id: int) -> None:
        """Soft-delete a user and drop its role bindings."""
        if actor.user_id == user_id:
            raise ForbiddenError("You cannot delete your own account")
        user = self._get_user(user_id, lock=True)

        def apply() -> User:
            user.roles.clear()
            user.deleted_at = datetime.utcnow()
            user.status = UserStatus.INACTIVE
            return user

        self._mutation(
            actor, AuditAction.DELETE, apply, resource_id=user.id, pre_image=lambda: user
        )
        logger.info("User %s deleted by user %s", user_id, actor.user_id)

    # --- User <-> Role bindings ---

    def _replace_roles(self, user: User, roles: list[Role]) -> None:
        wanted = {r.id: r for r in roles}
        for current in list(user.roles):
            if current.id not in wanted:
                user.roles.remove(current)
        held = {r.id for r in user.roles}
        for role_id, role in wanted.items():
            if role_id not in held:
                user.roles.append(role)

    def assign_roles_to_user(
        self, actor: Claims, user_id: int, role_ids: list[int], mode: BindingMode
    ) -> User:
        """
        Bind roles to a user.

        REPLACE leaves the user with exactly role_ids (an empty list
        clears every role). ADD keeps the current roles and adds
        role_ids; adding a role the user already holds is a no-op.
        """
        mode = BindingMode(mode)
        user = self._get_user(user_id, lock=True)
        if mode == BindingMode.ADD and not role_ids:
            return user
        roles = self.resolve_roles(role_ids)

        def apply() -> User:
            if mode == BindingMode.REPLACE:
                self._replace_roles(user, roles)
            else:
                held = {r.id for r in user.roles}
                for role in roles:
                    if role.id not in held:
                        user.roles.append(role)
            user.updated_at = datetime.utcnow()
            return user

        user = self._mutation(actor, AuditAction.UPDATE, apply, pre_image=lambda: user)
        logger.info(
            "Roles %s assigned to user %s (%s) by user %s",
            sorted(set(role_ids)), user.id, mode.value, actor.user_id,
        )
        return user

    def remove_roles_from_user(
        self, actor: Claims, user_id: int, role_ids: list[int]
    ) -> User:
        """
        Unbind roles from a user.

        Roles the user does not hold are skipped. Every id must still
        name an existing role.
        """
        user = self._get_user(user_id, lock=True)
        if not role_ids:
            return user
        dropped = {r.id for r in self.resolve_roles(role_ids)}

        def apply() -> User:
            for current in list(user.roles):
                if current.id in dropped:
                    user.roles.remove(current)
            user.updated_at = datetime.utcnow()
            return user

        user = self._mutation(actor, AuditAction.UPDATE, apply, pre_image=lambda: user)
        logger.info(
            "Roles %s removed from user %s by user %s",
            sorted(dropped), user.id, actor.user_id,
        )
        return user
