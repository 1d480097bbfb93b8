"""
Permission service: the catalog of (resource, action) pairs.

Also the entry point for granting and revoking permissions on a
role. Those changes are recorded against the role, so the work is
delegated to RoleService.
"""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from opsdesk.config import get_settings
from opsdesk.errors import (
    AlreadyExistsError,
    BadRequestError,
    ConflictError,
    NotFoundError,
)
from opsdesk.models.enums import AuditAction, ResourceType
from opsdesk.models.permission import Permission
from opsdesk.models.role import Role
from opsdesk.schemas.auth import Claims
from opsdesk.schemas.permission import (
    PermissionCreate,
    PermissionUpdate,
    PermissionResponse,
)
from opsdesk.services.audit_service import AuditRecorder
from opsdesk.services.base import AuditedService
from opsdesk.services.role_service import RoleService

logger = logging.getLogger(__name__)


class PermissionService(AuditedService):

    resource_type = ResourceType.PERMISSION

    def __init__(self, db: Session, audit: AuditRecorder | None = None):
        super().__init__(db, audit)
        self.role_service = RoleService(db, self.audit)

    def snapshot(self, permission: Permission) -> dict[str, Any]:
        data = PermissionResponse.model_validate(permission).model_dump(mode="json")
        data["role_ids"] = sorted(r.id for r in permission.roles)
        return data

    # --- Lookups ---

    def get_permission(self, permission_id: int) -> Permission:
        permission = self.db.get(Permission, permission_id)
        if not permission:
            raise NotFoundError(f"Permission {permission_id} not found")
        return permission

    def _ensure_unique(
        self, name: str, resource: str, action: str, exclude_id: int | None = None
    ) -> None:
        by_name = select(Permission.id).where(Permission.name == name)
        by_pair = select(Permission.id).where(
            Permission.resource == resource, Permission.action == action
        )
        if exclude_id is not None:
            by_name = by_name.where(Permission.id != exclude_id)
            by_pair = by_pair.where(Permission.id != exclude_id)

        if self.db.execute(by_name).first():
            raise AlreadyExistsError(f"Permission with name '{name}' already exists")
        if self.db.execute(by_pair).first():
            raise AlreadyExistsError(
                f"Permission for resource '{resource}' and action '{action}' already exists"
            )

    # --- Catalog ---

    def create_permission(self, actor: Claims, request: PermissionCreate) -> Permission:
        self._ensure_unique(request.name, request.resource, request.action)

        def apply() -> Permission:
            permission = Permission(
                name=request.name,
                resource=request.resource,
                action=request.action,
                description=request.description,
            )
            self.db.add(permission)
            return permission

        permission = self._mutation(actor, AuditAction.CREATE, apply)
        logger.info(
            "Permission %s (%s) created by user %s",
            permission.id, permission.key, actor.user_id,
        )
        return permission

    def update_permission(
        self, actor: Claims, permission_id: int, request: PermissionUpdate
    ) -> Permission:
        """Partial update. Both uniqueness rules are checked against the result."""
        permission = self.get_permission(permission_id)
        name = request.name if request.name is not None else permission.name
        resource = request.resource if request.resource is not None else permission.resource
        action = request.action if request.action is not None else permission.action
        self._ensure_unique(name, resource, action, exclude_id=permission.id)

        def apply() -> Permission:
            permission.name = name
            permission.resource = resource
            permission.action = action
            if "description" in request.model_fields_set:
                permission.description = request.description
            return permission

        permission = self._mutation(
            actor, AuditAction.UPDATE, apply, pre_image=lambda: permission
        )
        logger.info("Permission %s updated by user %s", permission.id, actor.user_id)
        return permission

    def delete_permission(self, actor: Claims, permission_id: int) -> None:
        """
        Delete a permission and its role bindings.

        Roles that still grant it simply lose it. Set
        BLOCK_PERMISSION_DELETE_IN_USE to refuse instead.
        """
        permission = self.get_permission(permission_id)
        role_names = [r.name for r in permission.roles]

        if role_names:
            if get_settings().BLOCK_PERMISSION_DELETE_IN_USE:
                raise ConflictError(
                    f"Permission '{permission.name}' is granted by "
                    f"{len(role_names)} role(s) and cannot be deleted",
                    {"roles": role_names},
                )
            logger.warning(
                "Deleting permission %s (%s) still granted by roles: %s",
                permission.id, permission.key, ", ".join(role_names),
            )

        def apply() -> Permission:
            permission.roles.clear()
            self.db.delete(permission)
            return permission

        self._mutation(
            actor,
            AuditAction.DELETE,
            apply,
            resource_id=permission_id,
            pre_image=lambda: permission,
        )
        logger.info("Permission %s deleted by user %s", permission_id, actor.user_id)

    def list_permissions(
        self,
        page: int = 1,
        page_size: int = 10,
        name: str | None = None,
        resource: str | None = None,
        action: str | None = None,
    ) -> tuple[list[Permission], int]:
        stmt = select(Permission)
        if name:
            stmt = stmt.where(Permission.name.icontains(name, autoescape=True))
        if resource:
            stmt = stmt.where(Permission.resource == resource.strip().lower())
        if action:
            stmt = stmt.where(Permission.action == action.strip().lower())
        stmt = stmt.order_by(Permission.resource, Permission.action, Permission.id)
        return self._paginate(stmt, page, page_size)

    # --- Role bindings ---

    def add_permissions_to_role(
        self, actor: Claims, role_id: int, permission_ids: list[int]
    ) -> Role:
        if not permission_ids:
            raise BadRequestError("permission_ids must not be empty")
        role = self.role_service.add_permissions(actor, role_id, permission_ids)
        logger.info(
            "Permissions %s granted to role %s by user %s",
            sorted(set(permission_ids)), role_id, actor.user_id,
        )
        return role

    def remove_permissions_from_role(
        self, actor: Claims, role_id: int, permission_ids: list[int]
    ) -> Role:
        if not permission_ids:
            raise BadRequestError("permission_ids must not be empty")
        role = self.role_service.remove_permissions(actor, role_id, permission_ids)
        logger.info(
            "Permissions %s revoked from role %s by user %s",
            sorted(set(permission_ids)), role_id, actor.user_id,
        )
        return role

    def get_permissions_for_role(self, role_id: int) -> list[Permission]:
        return self.role_service.get_permissions(role_id)
