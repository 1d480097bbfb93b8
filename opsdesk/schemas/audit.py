"""
Pydantic schemas for browsing the audit trail.
"""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from opsdesk.models.enums import AuditAction


class AuditLogQuery(BaseModel):
    """Filters for the audit trail. Every filter is optional."""
    user_id: int | None = None
    action: AuditAction | None = None
    resource: str | None = None
    resource_id: int | None = None
    start_date: date | None = None
    end_date: date | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1)

    @model_validator(mode="after")
    def dates_in_order(self) -> "AuditLogQuery":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class AuditLogResponse(BaseModel):
    id: int
    sequence: int
    user_id: int
    username: str
    action: str
    resource: str
    resource_id: int | None
    details: dict[str, Any]
    ip_address: str | None
    user_agent: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ChainVerification(BaseModel):
    """Result of walking the audit hash chain."""
    valid: bool
    checked: int
    first_invalid_id: int | None = None
