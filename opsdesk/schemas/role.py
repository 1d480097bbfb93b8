"""
Pydantic schemas for roles.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from opsdesk.schemas.permission import PermissionBrief


class RoleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    description: str | None = Field(default=None, max_length=255)
    permission_ids: list[int] = Field(default_factory=list)


class RoleUpdate(BaseModel):
    """
    Role update.

    permission_ids=None leaves the permission set alone. Any list,
    including an empty one, replaces the whole set.
    """
    name: str | None = Field(default=None, min_length=1, max_length=50)
    description: str | None = Field(default=None, max_length=255)
    permission_ids: list[int] | None = None


class RoleBrief(BaseModel):
    id: int
    name: str

    model_config = {"from_attributes": True}


class RoleResponse(BaseModel):
    id: int
    name: str
    description: str | None
    permission_ids: list[int]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RoleDetails(BaseModel):
    """A role with its read-time joins: holder count and permissions."""
    id: int
    name: str
    description: str | None
    created_at: datetime
    updated_at: datetime
    user_count: int
    permissions: list[PermissionBrief]
