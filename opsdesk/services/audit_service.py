"""
Audit service: the write path and read path of the audit trail.

Writes go through AuditRecorder.record(). A record is written in a
SAVEPOINT of the caller's transaction, which gives two guarantees:

1. It commits or rolls back together with the mutation it
   describes, so an aborted request leaves no orphan record.
2. A failure while writing it rolls back only the savepoint. The
   error is logged and the business operation carries on; audit
   is a log of record, it never decides whether a change happens.

Each record is hash-chained to the previous one (sequence,
previous_hash, entry_hash). Appends lock the audit_chain_head row,
so concurrent writers queue instead of racing for a sequence.
verify_chain() detects rows that were edited, removed or inserted
behind the application's back.
"""

import hashlib
import json
import logging
from datetime import datetime, timedelta
from typing import Any, Callable

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from opsdesk.config import get_settings
from opsdesk.errors import NotFoundError
from opsdesk.models.audit_log import (
    AuditChainHead,
    AuditLog,
    CHAIN_HEAD_ID,
    GENESIS_HASH,
)
from opsdesk.models.enums import AuditAction, ResourceType
from opsdesk.schemas.audit import AuditLogQuery, ChainVerification
from opsdesk.schemas.auth import Claims, ClientMeta

logger = logging.getLogger(__name__)


# --- Details payload builders ---

def create_details(entity: dict[str, Any]) -> dict[str, Any]:
    return {"entity": entity}


def update_details(
    before: dict[str, Any] | None, after: dict[str, Any] | None
) -> dict[str, Any]:
    return {"before": before, "after": after}


def delete_details(deleted: dict[str, Any]) -> dict[str, Any]:
    return {"deleted": deleted}


def _canonical(details: dict[str, Any]) -> str:
    return json.dumps(details, sort_keys=True, separators=(",", ":"), default=str)


def compute_entry_hash(entry: AuditLog) -> str:
    """SHA-256 over the immutable fields of a record and its predecessor's hash."""
    parts = [
        entry.previous_hash,
        str(entry.sequence),
        str(entry.user_id),
        entry.username,
        entry.action,
        entry.resource,
        str(entry.resource_id),
        _canonical(entry.details),
        entry.ip_address or "",
        entry.user_agent or "",
        entry.created_at.isoformat(),
    ]
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


class AuditRecorder:
    """
    Appends and reads audit records.

    One recorder is built per request. It carries the request's
    client metadata so that call sites only pass what they know:
    who acted, what they did, and to what.
    """

    def __init__(
        self,
        db: Session,
        client: ClientMeta | None = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.db = db
        self.client = client or ClientMeta()
        self.clock = clock

    def record(
        self,
        actor: Claims,
        action: AuditAction,
        resource: ResourceType | str,
        resource_id: int | None,
        details: dict[str, Any] | None = None,
    ) -> AuditLog | None:
        """
        Persist one audit record. Never raises.

        Returns the new record, or None if it could not be written.
        """
        resource_tag = resource.value if isinstance(resource, ResourceType) else str(resource)
        try:
            with self.db.begin_nested():
                entry = self._build_entry(
                    actor, AuditAction(action), resource_tag.upper(), resource_id, details or {}
                )
                self.db.add(entry)
        except Exception:
            logger.exception(
                "Failed to write audit log: action=%s resource=%s resource_id=%s user_id=%s",
                getattr(action, "value", action), resource_tag, resource_id, actor.user_id,
            )
            return None
        return entry

    def _chain_head(self) -> AuditChainHead:
        """
        Lock and return the chain head.

        The lock is held until the caller's transaction ends, so
        concurrent writers append one after another. The row is
        created from the newest record if the table is empty.
        """
        head = self.db.execute(
            select(AuditChainHead)
            .where(AuditChainHead.id == CHAIN_HEAD_ID)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if head is None:
            last = self.db.execute(
                select(AuditLog).order_by(AuditLog.sequence.desc()).limit(1)
            ).scalar_one_or_none()
            head = AuditChainHead(
                id=CHAIN_HEAD_ID,
                sequence=last.sequence if last else 0,
                entry_hash=last.entry_hash if last else GENESIS_HASH,
            )
            self.db.add(head)
        return head

    def _build_entry(
        self,
        actor: Claims,
        action: AuditAction,
        resource: str,
        resource_id: int | None,
        details: dict[str, Any],
    ) -> AuditLog:
        head = self._chain_head()

        entry = AuditLog(
            sequence=head.sequence + 1,
            previous_hash=head.entry_hash,
            user_id=actor.user_id,
            username=actor.name,
            action=action.value,
            resource=resource,
            resource_id=resource_id,
            # Round-trip through JSON so the hashed value is exactly
            # what the database will hand back later.
            details=json.loads(_canonical(details)),
            ip_address=self.client.ip_address,
            user_agent=self.client.user_agent,
            created_at=self.clock(),
        )
        entry.entry_hash = compute_entry_hash(entry)
        head.sequence = entry.sequence
        head.entry_hash = entry.entry_hash
        return entry

    # --- Read path ---

    def query(self, params: AuditLogQuery) -> tuple[list[AuditLog], int]:
        """Filtered, paginated audit records, newest first."""
        settings = get_settings()
        stmt = select(AuditLog)

        if params.user_id is not None:
            stmt = stmt.where(AuditLog.user_id == params.user_id)
        if params.action is not None:
            stmt = stmt.where(AuditLog.action == params.action.value)
        if params.resource:
            stmt = stmt.where(AuditLog.resource == params.resource.upper())
        if params.resource_id is not None:
            stmt = stmt.where(AuditLog.resource_id == params.resource_id)
        if params.start_date is not None:
            start = datetime.combine(params.start_date, datetime.min.time())
            stmt = stmt.where(AuditLog.created_at >= start)
        if params.end_date is not None:
            # end_date covers the whole day
            end = datetime.combine(params.end_date, datetime.min.time()) + timedelta(days=1)
            stmt = stmt.where(AuditLog.created_at < end)

        total = self.db.execute(
            select(func.count()).select_from(stmt.subquery())
        ).scalar_one()

        page_size = min(params.page_size, settings.MAX_PAGE_SIZE)
        items = self.db.execute(
            stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset((params.page - 1) * page_size)
            .limit(page_size)
        ).scalars().all()
        return list(items), total

    def get_log(self, log_id: int) -> AuditLog:
        entry = self.db.get(AuditLog, log_id)
        if not entry:
            raise NotFoundError(f"Audit log {log_id} not found")
        return entry

    def verify_chain(self) -> ChainVerification:
        """
        Walk the log in sequence order and check every link.

        A record is invalid if its sequence skips, if it does not
        point at its predecessor's hash, or if its own hash no
        longer matches its content.
        """
        expected_previous = GENESIS_HASH
        expected_sequence = 1
        checked = 0

        entries = self.db.execute(
            select(AuditLog).order_by(AuditLog.sequence)
        ).scalars()
        for entry in entries:
            checked += 1
            if (
                entry.sequence != expected_sequence
                or entry.previous_hash != expected_previous
                or entry.entry_hash != compute_entry_hash(entry)
            ):
                logger.warning(
                    "Audit chain broken at record %s (sequence %s)",
                    entry.id, entry.sequence,
                )
                return ChainVerification(
                    valid=False, checked=checked, first_invalid_id=entry.id
                )
            expected_previous = entry.entry_hash
            expected_sequence += 1

        return ChainVerification(valid=True, checked=checked)
