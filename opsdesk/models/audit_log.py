"""
Audit log model.

Records every state-changing operation together with the
identity that caused it. Rows are append-only: the listeners at
the bottom of this module refuse any UPDATE or DELETE issued
through the ORM, and each row is hash-chained to its predecessor
so that edits made behind the ORM's back are detectable.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import String, DateTime, Integer, JSON, event
from sqlalchemy.orm import Mapped, mapped_column

from opsdesk.models.base import Base

GENESIS_HASH = "0" * 64


class AuditLog(Base):
    """
    Immutable record of a system event.

    user_id and username describe the actor. The name is copied at
    write time so history still reads correctly after the actor is
    renamed or deleted.
    """

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    sequence: Mapped[int] = mapped_column(
        Integer, unique=True, nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    resource: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_id: Mapped[int | None] = mapped_column(
        Integer, nullable=True, index=True
    )
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(255), nullable=True)
    previous_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    entry_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )

    def __repr__(self) -> str:
        return (
            f"<AuditLog #{self.sequence} {self.action} "
            f"{self.resource}:{self.resource_id}>"
        )


class AuditChainHead(Base):
    """
    Single row pointing at the newest audit record.

    Writers lock this row before appending, which serializes
    appends: two transactions can never pick the same sequence.
    """

    __tablename__ = "audit_chain_head"

    id: Mapped[int] = mapped_column(primary_key=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    entry_hash: Mapped[str] = mapped_column(String(64), nullable=False)


CHAIN_HEAD_ID = 1


class AuditLogImmutableError(RuntimeError):
    """Raised when code tries to change or remove an audit record."""


@event.listens_for(AuditLog, "before_update")
def _refuse_update(mapper, connection, target):
    raise AuditLogImmutableError(f"Audit log {target.id} cannot be modified")


@event.listens_for(AuditLog, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise AuditLogImmutableError(f"Audit log {target.id} cannot be deleted")
