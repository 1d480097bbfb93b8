"""Business logic services."""

from opsdesk.services.audit_service import AuditRecorder
from opsdesk.services.authorization import Authorizer
from opsdesk.services.role_service import RoleService
from opsdesk.services.permission_service import PermissionService
from opsdesk.services.user_service import UserService
from opsdesk.services.auth_service import AuthService
from opsdesk.services.business_service import BusinessService

__all__ = [
    "AuditRecorder",
    "Authorizer",
    "RoleService",
    "PermissionService",
    "UserService",
    "AuthService",
    "BusinessService",
]
