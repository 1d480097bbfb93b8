"""
Business model.

The top of the organizational hierarchy: environments, assets and
services all belong to a business. Only the entity itself lives
here; it is managed through BusinessService like any other
audited resource.
"""

from datetime import datetime

from sqlalchemy import String, DateTime, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from opsdesk.models.base import Base
from opsdesk.models.enums import BusinessStatus


class Business(Base):
    __tablename__ = "businesses"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    owner: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[BusinessStatus] = mapped_column(
        SAEnum(
            BusinessStatus,
            name="business_status_enum",
            create_constraint=True,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=BusinessStatus.ACTIVE,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def __repr__(self) -> str:
        return f"<Business {self.name} ({self.status.value})>"
