"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from opsdesk.models.base import Base
from opsdesk.models.enums import (
    UserStatus,
    AuditAction,
    ResourceType,
    BindingMode,
    BusinessStatus,
)
from opsdesk.models.associations import user_roles, role_permissions
from opsdesk.models.audit_log import AuditLog, AuditChainHead
from opsdesk.models.user import User
from opsdesk.models.role import Role
from opsdesk.models.permission import Permission
from opsdesk.models.business import Business

__all__ = [
    "Base",
    "UserStatus",
    "AuditAction",
    "ResourceType",
    "BindingMode",
    "BusinessStatus",
    "user_roles",
    "role_permissions",
    "AuditLog",
    "AuditChainHead",
    "User",
    "Role",
    "Permission",
    "Business",
]
