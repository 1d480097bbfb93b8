"""
Many-to-many association tables.

These rows have no identity beyond the pair of foreign keys and
no lifecycle of their own. They are only ever written through the
`roles` / `permissions` collections, never edited directly.
"""

from sqlalchemy import Column, ForeignKey, Table

from opsdesk.models.base import Base

user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)

role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column(
        "permission_id",
        ForeignKey("permissions.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)
