"""
Role service: the role registry and the role-permission bindings.

A role's permission set is only ever changed through set
operations here (replace, union, difference). Deleting a role is
refused while any user still holds it.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select, func

from opsdesk.errors import AlreadyExistsError, ConflictError, NotFoundError
from opsdesk.models.associations import user_roles
from opsdesk.models.enums import AuditAction, ResourceType
from opsdesk.models.permission import Permission
from opsdesk.models.role import Role
from opsdesk.models.user import User
from opsdesk.schemas.auth import Claims
from opsdesk.schemas.permission import PermissionBrief
from opsdesk.schemas.role import RoleCreate, RoleUpdate, RoleResponse, RoleDetails
from opsdesk.services.base import AuditedService

logger = logging.getLogger(__name__)


class RoleService(AuditedService):

    resource_type = ResourceType.ROLE

    def snapshot(self, role: Role) -> dict[str, Any]:
        return RoleResponse.model_validate(role).model_dump(mode="json")

    # --- Lookups ---

    def _get_role(self, role_id: int, lock: bool = False) -> Role:
        stmt = select(Role).where(Role.id == role_id)
        if lock:
            stmt = stmt.with_for_update()
        role = self.db.execute(stmt).scalar_one_or_none()
        if not role:
            raise NotFoundError(f"Role {role_id} not found")
        return role

    def _ensure_name_free(self, name: str, exclude_id: int | None = None) -> None:
        stmt = select(Role.id).where(Role.name == name)
        if exclude_id is not None:
            stmt = stmt.where(Role.id != exclude_id)
        if self.db.execute(stmt).first():
            raise AlreadyExistsError(f"Role with name '{name}' already exists")

    def resolve_permissions(self, permission_ids: list[int]) -> list[Permission]:
        """Load permissions by id. Every id must exist."""
        wanted = set(permission_ids)
        if not wanted:
            return []
        found = self.db.execute(
            select(Permission).where(Permission.id.in_(wanted)).order_by(Permission.id)
        ).scalars().all()
        missing = wanted - {p.id for p in found}
        if missing:
            raise NotFoundError(
                f"Permissions not found: {sorted(missing)}",
                {"missing_permission_ids": sorted(missing)},
            )
        return list(found)

    def holder_count(self, role_id: int) -> int:
        """Number of live users bound to the role."""
        return self.db.execute(
            select(func.count())
            .select_from(user_roles)
            .join(User, User.id == user_roles.c.user_id)
            .where(user_roles.c.role_id == role_id, User.deleted_at.is_(None))
        ).scalar_one()

    # --- Registry ---

    def create_role(self, actor: Claims, request: RoleCreate) -> Role:
        """Create a role together with its initial permission set."""
        self._ensure_name_free(request.name)
        permissions = self.resolve_permissions(request.permission_ids)

        def apply() -> Role:
            role = Role(
                name=request.name,
                description=request.description,
                permissions=permissions,
            )
            self.db.add(role)
            return role

        role = self._mutation(actor, AuditAction.CREATE, apply)
        logger.info("Role %s '%s' created by user %s", role.id, role.name, actor.user_id)
        return role

    def update_role(self, actor: Claims, role_id: int, request: RoleUpdate) -> Role:
        """
        Update a role.

        When permission_ids is given the role ends up with exactly
        that set, even if the list is empty.
        """
        role = self._get_role(role_id, lock=True)
        if request.name is not None and request.name != role.name:
            self._ensure_name_free(request.name, exclude_id=role.id)
        permissions = (
            self.resolve_permissions(request.permission_ids)
            if request.permission_ids is not None
            else None
        )

        def apply() -> Role:
            if request.name is not None:
                role.name = request.name
            if "description" in request.model_fields_set:
                role.description = request.description
            if permissions is not None:
                self._replace_permissions(role, permissions)
            role.updated_at = datetime.utcnow()
            return role

        role = self._mutation(actor, AuditAction.UPDATE, apply, pre_image=lambda: role)
        logger.info("Role %s updated by user %s", role.id, actor.user_id)
        return role

    def delete_role(self, actor: Claims, role_id: int) -> None:
        """Delete a role. Refused while any user holds it."""
        role = self._get_role(role_id, lock=True)
        holders = self.holder_count(role.id)
        if holders:
            raise ConflictError(
                f"Role '{role.name}' is assigned to {holders} user(s) and cannot be deleted",
                {"user_count": holders},
            )

        name = role.name

        def apply() -> Role:
            role.permissions.clear()
            self.db.delete(role)
            return role

        self._mutation(
            actor, AuditAction.DELETE, apply, resource_id=role.id, pre_image=lambda: role
        )
        logger.info("Role %s '%s' deleted by user %s", role_id, name, actor.user_id)

    def get_role(self, role_id: int) -> RoleDetails:
        role = self._get_role(role_id)
        return RoleDetails(
            id=role.id,
            name=role.name,
            description=role.description,
            created_at=role.created_at,
            updated_at=role.updated_at,
            user_count=self.holder_count(role.id),
            permissions=[PermissionBrief.model_validate(p) for p in role.permissions],
        )

    def list_roles(
        self, page: int = 1, page_size: int = 10, name: str | None = None
    ) -> tuple[list[Role], int]:
        stmt = select(Role)
        if name:
            stmt = stmt.where(Role.name.icontains(name, autoescape=True))
        stmt = stmt.order_by(Role.created_at, Role.id)
        return self._paginate(stmt, page, page_size)

    # --- Role <-> Permission bindings ---

    def _replace_permissions(self, role: Role, permissions: list[Permission]) -> None:
        wanted = {p.id: p for p in permissions}
        for current in list(role.permissions):
            if current.id not in wanted:
                role.permissions.remove(current)
        held = {p.id for p in role.permissions}
        for permission_id, permission in wanted.items():
            if permission_id not in held:
                role.permissions.append(permission)

    def add_permissions(
        self, actor: Claims, role_id: int, permission_ids: list[int]
    ) -> Role:
        """Union the given permissions into the role. Already-held ids are skipped."""
        role = self._get_role(role_id, lock=True)
        permissions = self.resolve_permissions(permission_ids)

        def apply() -> Role:
            held = {p.id for p in role.permissions}
            for permission in permissions:
                if permission.id not in held:
                    role.permissions.append(permission)
            role.updated_at = datetime.utcnow()
            return role

        return self._mutation(actor, AuditAction.UPDATE, apply, pre_image=lambda: role)

    def remove_permissions(
        self, actor: Claims, role_id: int, permission_ids: list[int]
    ) -> Role:
        """Remove the given permissions from the role. Ids it does not hold are skipped."""
        role = self._get_role(role_id, lock=True)
        permissions = self.resolve_permissions(permission_ids)
        dropped = {p.id for p in permissions}

        def apply() -> Role:
            for current in list(role.permissions):
                if current.id in dropped:
                    role.permissions.remove(current)
            role.updated_at = datetime.utcnow()
            return role

        return self._mutation(actor, AuditAction.UPDATE, apply, pre_image=lambda: role)

    def get_permissions(self, role_id: int) -> list[Permission]:
        return list(self._get_role(role_id).permissions)
