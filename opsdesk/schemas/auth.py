"""
Pydantic schemas for identity and authentication.
"""

from pydantic import BaseModel, Field

from opsdesk.schemas.user import UserResponse


class Claims(BaseModel):
    """
    Verified identity of the caller.

    Produced by token verification and passed explicitly into
    every authorization check and every mutating service call.
    """
    user_id: int
    email: str
    name: str


class ClientMeta(BaseModel):
    """Network metadata of the request, copied into audit records."""
    ip_address: str | None = None
    user_agent: str | None = Field(default=None, max_length=255)


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
