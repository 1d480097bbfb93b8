"""
Base class for services whose writes must be audited.

Every mutating method of a subclass goes through _mutation(),
which fixes the order of the steps:

    pre-image -> apply + flush -> post-image -> audit

Both images are best-effort. A mutation that raises never reaches
the audit step, so a failed operation leaves no record. A missing
image or a record that fails to write never fails the mutation
(see AuditRecorder.record).
"""

import logging
from typing import Any, Callable, TypeVar

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from opsdesk.config import get_settings
from opsdesk.models.enums import AuditAction, ResourceType
from opsdesk.schemas.auth import Claims
from opsdesk.services.audit_service import (
    AuditRecorder,
    create_details,
    update_details,
    delete_details,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AuditedService:
    """
    Common plumbing for services that change audited entities.

    Subclasses set resource_type and implement snapshot(), which
    turns an entity into the JSON-safe dict stored in audit details.
    """

    resource_type: ResourceType

    def __init__(self, db: Session, audit: AuditRecorder | None = None):
        self.db = db
        self.audit = audit or AuditRecorder(db)

    def snapshot(self, entity: Any) -> dict[str, Any]:
        raise NotImplementedError

    def _capture(self, load: Callable[[], Any], stage: str) -> dict[str, Any] | None:
        """
        Best-effort snapshot of an entity. None if it could not be taken.

        Runs in its own savepoint so a failed read does not poison the
        caller's transaction.
        """
        try:
            with self.db.begin_nested():
                entity = load()
                return self.snapshot(entity) if entity is not None else None
        except Exception:
            logger.warning(
                "Could not capture %s of %s; continuing without it",
                stage,
                self.resource_type.value,
                exc_info=True,
            )
            return None

    def _mutation(
        self,
        actor: Claims,
        action: AuditAction,
        apply: Callable[[], T],
        resource_id: int | None = None,
        pre_image: Callable[[], Any] | None = None,
    ) -> T:
        """
        Apply a change and record it.

        `apply` performs the change and returns the entity it acted
        on. `pre_image` loads the entity as it was before the change;
        it is only read for updates and deletes. Once `apply` has
        succeeded nothing here raises.
        """
        before = self._capture(pre_image, "pre-image") if pre_image is not None else None

        entity = apply()
        self.db.flush()

        if resource_id is None:
            resource_id = entity.id
        fallback = {"id": resource_id}

        if action == AuditAction.CREATE:
            after = self._capture(lambda: entity, "post-image")
            details = create_details(after if after is not None else fallback)
        elif action == AuditAction.DELETE:
            details = delete_details(before if before is not None else fallback)
        else:
            after = self._capture(lambda: entity, "post-image")
            details = update_details(before, after)

        self.audit.record(actor, action, self.resource_type, resource_id, details)
        return entity

    def _paginate(self, stmt, page: int, page_size: int) -> tuple[list, int]:
        """Run a select for one page. Returns (items, total)."""
        settings = get_settings()
        page = max(page, 1)
        page_size = min(max(page_size, 1), settings.MAX_PAGE_SIZE)

        total = self.db.execute(
            select(func.count()).select_from(stmt.order_by(None).subquery())
        ).scalar_one()
        items = self.db.execute(
            stmt.offset((page - 1) * page_size).limit(page_size)
        ).scalars().all()
        return list(items), total
