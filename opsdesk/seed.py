"""
Seed the default permission catalog, the admin role and,
optionally, a bootstrap administrator.

Safe to run repeatedly: anything that already exists is left as is.

    python -m opsdesk.seed
"""

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from opsdesk.config import get_settings
from opsdesk.logging_config import configure_logging
from opsdesk.models.base import SessionLocal
from opsdesk.models.enums import BindingMode
from opsdesk.models.permission import Permission
from opsdesk.models.role import Role
from opsdesk.models.user import User
from opsdesk.schemas.auth import Claims
from opsdesk.schemas.permission import PermissionCreate
from opsdesk.schemas.role import RoleCreate, RoleUpdate
from opsdesk.schemas.user import UserCreate
from opsdesk.services.permission_service import PermissionService
from opsdesk.services.role_service import RoleService
from opsdesk.services.user_service import UserService, normalize_email

logger = logging.getLogger(__name__)

RESOURCES = ["user", "role", "permission", "audit_log", "business"]
ACTIONS = ["create", "read", "update", "delete"]
ADMIN_ROLE = "admin"

# Actor recorded in the audit log for bootstrap writes.
SYSTEM_ACTOR = Claims(user_id=0, email="system@opsdesk.local", name="system")


def seed_permissions(db: Session) -> list[Permission]:
    service = PermissionService(db)
    permissions = []
    for resource in RESOURCES:
        for action in ACTIONS:
            permission = db.execute(
                select(Permission).where(
                    Permission.resource == resource, Permission.action == action
                )
            ).scalar_one_or_none()
            if permission is None:
                permission = service.create_permission(
                    SYSTEM_ACTOR,
                    PermissionCreate(
                        name=f"{resource}:{action}",
                        resource=resource,
                        action=action,
                        description=f"{action.capitalize()} {resource.replace('_', ' ')}",
                    ),
                )
            permissions.append(permission)
    return permissions


def seed_admin_role(db: Session, permissions: list[Permission]) -> Role:
    """Create the admin role, or top it up with any permissions it lacks."""
    service = RoleService(db)
    wanted = [p.id for p in permissions]
    role = db.execute(select(Role).where(Role.name == ADMIN_ROLE)).scalar_one_or_none()
    if role is None:
        return service.create_role(
            SYSTEM_ACTOR,
            RoleCreate(
                name=ADMIN_ROLE,
                description="Full access to every resource",
                permission_ids=wanted,
            ),
        )
    missing = set(wanted) - set(role.permission_ids)
    if missing:
        role = service.update_role(
            SYSTEM_ACTOR,
            role.id,
            RoleUpdate(permission_ids=sorted(set(role.permission_ids) | missing)),
        )
    return role


def seed_admin_user(
    db: Session, role: Role, email: str, password: str, name: str
) -> User:
    service = UserService(db)
    user = service.get_by_email(email)
    if user is None:
        return service.create_user(
            SYSTEM_ACTOR,
            UserCreate(name=name, email=email, password=password, role_ids=[role.id]),
        )
    if role.id not in {r.id for r in user.roles}:
        user = service.assign_roles_to_user(
            SYSTEM_ACTOR, user.id, [role.id], BindingMode.ADD
        )
    return user


def seed_defaults(
    db: Session,
    admin_email: str | None = None,
    admin_password: str | None = None,
    admin_name: str | None = None,
) -> Role:
    """
    Seed everything. Flushes but does not commit.

    The admin user is only created when both an email and a
    password are available, either as arguments or from settings.
    """
    settings = get_settings()
    admin_email = admin_email or settings.ADMIN_EMAIL
    admin_password = admin_password or settings.ADMIN_PASSWORD
    admin_name = admin_name or settings.ADMIN_NAME

    permissions = seed_permissions(db)
    role = seed_admin_role(db, permissions)
    if admin_email and admin_password:
        seed_admin_user(db, role, normalize_email(admin_email), admin_password, admin_name)
    else:
        logger.info("ADMIN_EMAIL/ADMIN_PASSWORD not set; skipping admin user")
    return role


def main() -> None:
    configure_logging()
    db = SessionLocal()
    try:
        seed_defaults(db)
        db.commit()
        logger.info("Seeding complete")
    except Exception:
        db.rollback()
        logger.exception("Seeding failed")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
