"""
Pydantic schemas for users and their role bindings.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from opsdesk.models.enums import BindingMode, UserStatus
from opsdesk.schemas.role import RoleBrief


class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=5, max_length=255)
    password: str = Field(min_length=8, max_length=128)
    department: str | None = Field(default=None, max_length=100)
    status: UserStatus = UserStatus.ACTIVE
    role_ids: list[int] = Field(default_factory=list)


class UserUpdate(BaseModel):
    """
    Partial update of a user.

    status and role_ids are elevated fields: only callers holding
    user:update may set them, even on their own profile.
    """
    name: str | None = Field(default=None, min_length=1, max_length=100)
    department: str | None = Field(default=None, max_length=100)
    status: UserStatus | None = None
    role_ids: list[int] | None = None

    def touches_elevated_fields(self) -> bool:
        return self.status is not None or self.role_ids is not None


class RoleAssignment(BaseModel):
    """
    Assign roles to a user.

    mode has no default: the caller has to say whether the given
    roles replace the user's current set or are added to it.
    """
    role_ids: list[int]
    mode: BindingMode


class RoleRemoval(BaseModel):
    role_ids: list[int]


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    department: str | None
    status: UserStatus
    roles: list[RoleBrief]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
