"""
Pydantic schemas for businesses.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from opsdesk.models.enums import BusinessStatus


class BusinessCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=255)
    owner: str | None = Field(default=None, max_length=100)
    status: BusinessStatus = BusinessStatus.ACTIVE


class BusinessUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=255)
    owner: str | None = Field(default=None, max_length=100)
    status: BusinessStatus | None = None


class BusinessResponse(BaseModel):
    id: int
    name: str
    description: str | None
    owner: str | None
    status: BusinessStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
