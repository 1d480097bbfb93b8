"""
Role model.

A role is a named bundle of permissions. It cannot be deleted
while any user still holds it; RoleService enforces that.
"""

from datetime import datetime

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from opsdesk.models.base import Base
from opsdesk.models.associations import role_permissions, user_roles


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    permissions: Mapped[list["Permission"]] = relationship(
        secondary=role_permissions, back_populates="roles", order_by="Permission.id"
    )
    users: Mapped[list["User"]] = relationship(
        secondary=user_roles, back_populates="roles"
    )

    @property
    def permission_ids(self) -> list[int]:
        return sorted(p.id for p in self.permissions)

    def __repr__(self) -> str:
        return f"<Role {self.name}>"
