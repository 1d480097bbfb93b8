"""
Business service: CRUD for businesses, audited like every other entity.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select

from opsdesk.errors import AlreadyExistsError, NotFoundError
from opsdesk.models.business import Business
from opsdesk.models.enums import AuditAction, BusinessStatus, ResourceType
from opsdesk.schemas.auth import Claims
from opsdesk.schemas.business import BusinessCreate, BusinessUpdate, BusinessResponse
from opsdesk.services.base import AuditedService

logger = logging.getLogger(__name__)


class BusinessService(AuditedService):

    resource_type = ResourceType.BUSINESS

    def snapshot(self, business: Business) -> dict[str, Any]:
        return BusinessResponse.model_validate(business).model_dump(mode="json")

    def get_business(self, business_id: int) -> Business:
        business = self.db.get(Business, business_id)
        if not business:
            raise NotFoundError(f"Business {business_id} not found")
        return business

    def _ensure_name_free(self, name: str, exclude_id: int | None = None) -> None:
        stmt = select(Business.id).where(Business.name == name)
        if exclude_id is not None:
            stmt = stmt.where(Business.id != exclude_id)
        if self.db.execute(stmt).first():
            raise AlreadyExistsError(f"Business with name '{name}' already exists")

    def create_business(self, actor: Claims, request: BusinessCreate) -> Business:
        self._ensure_name_free(request.name)

        def apply() -> Business:
            business = Business(
                name=request.name,
                description=request.description,
                owner=request.owner,
                status=request.status,
            )
            self.db.add(business)
            return business

        business = self._mutation(actor, AuditAction.CREATE, apply)
        logger.info("Business %s created by user %s", business.id, actor.user_id)
        return business

    def update_business(
        self, actor: Claims, business_id: int, request: BusinessUpdate
    ) -> Business:
        business = self.get_business(business_id)
        if request.name is not None and request.name != business.name:
            self._ensure_name_free(request.name, exclude_id=business.id)

        def apply() -> Business:
            for field in ("name", "status"):
                value = getattr(request, field)
                if value is not None:
                    setattr(business, field, value)
            for field in ("description", "owner"):
                if field in request.model_fields_set:
                    setattr(business, field, getattr(request, field))
            business.updated_at = datetime.utcnow()
            return business

        business = self._mutation(
            actor, AuditAction.UPDATE, apply, pre_image=lambda: business
        )
        logger.info("Business %s updated by user %s", business.id, actor.user_id)
        return business

    def delete_business(self, actor: Claims, business_id: int) -> None:
        business = self.get_business(business_id)

        def apply() -> Business:
            self.db.delete(business)
            return business

        self._mutation(
            actor,
            AuditAction.DELETE,
            apply,
            resource_id=business_id,
            pre_image=lambda: business,
        )
        logger.info("Business %s deleted by user %s", business_id, actor.user_id)

    def list_businesses(
        self,
        page: int = 1,
        page_size: int = 10,
        name: str | None = None,
        status: BusinessStatus | None = None,
    ) -> tuple[list[Business], int]:
        stmt = select(Business)
        if name:
            stmt = stmt.where(Business.name.icontains(name, autoescape=True))
        if status is not None:
            stmt = stmt.where(Business.status == status)
        stmt = stmt.order_by(Business.name, Business.id)
        return self._paginate(stmt, page, page_size)
