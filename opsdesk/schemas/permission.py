"""
Pydantic schemas for the permission catalog.

resource and action are stored lower-case so that ("ROLE", "DELETE")
and ("role", "delete") are recognised as the same operation.
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


def _normalize(value: str) -> str:
    value = value.strip().lower()
    if not value:
        raise ValueError("must not be blank")
    return value


class PermissionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    resource: str = Field(min_length=1, max_length=50)
    action: str = Field(min_length=1, max_length=50)
    description: str | None = Field(default=None, max_length=255)

    @field_validator("resource", "action")
    @classmethod
    def normalize_pair(cls, v: str) -> str:
        return _normalize(v)


class PermissionUpdate(BaseModel):
    """Partial update: omitted fields are left unchanged."""
    name: str | None = Field(default=None, min_length=1, max_length=100)
    resource: str | None = Field(default=None, min_length=1, max_length=50)
    action: str | None = Field(default=None, min_length=1, max_length=50)
    description: str | None = Field(default=None, max_length=255)

    @field_validator("resource", "action")
    @classmethod
    def normalize_pair(cls, v: str | None) -> str | None:
        return _normalize(v) if v is not None else v


class PermissionIds(BaseModel):
    """Body of the bulk add/remove endpoints on a role."""
    permission_ids: list[int]


class PermissionBrief(BaseModel):
    id: int
    name: str
    resource: str
    action: str
    description: str | None

    model_config = {"from_attributes": True}


class PermissionResponse(PermissionBrief):
    created_at: datetime
    updated_at: datetime
