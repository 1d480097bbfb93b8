"""
Shared enumerations for database models.
"""

import enum


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"


class AuditAction(str, enum.Enum):
    """Verbs recorded in the audit log."""
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"


class ResourceType(str, enum.Enum):
    """Resource tags written to AuditLog.resource."""
    USER = "USER"
    ROLE = "ROLE"
    PERMISSION = "PERMISSION"
    BUSINESS = "BUSINESS"


class BindingMode(str, enum.Enum):
    """
    How assign_roles_to_user treats the roles a user already holds.

    REPLACE makes the role set exactly the given ids.
    ADD keeps existing roles and adds the given ones.
    """
    REPLACE = "replace"
    ADD = "add"


class BusinessStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
