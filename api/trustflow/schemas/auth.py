"""Pydantic schemas for bearer token registration."""

import uuid
from typing import Optional

from pydantic import Field

from trustflow.schemas.common import CamelModel


class TokenCreate(CamelModel):
    """Request schema for registering a user and issuing a bearer token."""

    email: Optional[str] = Field(None, max_length=255)
    display_name: Optional[str] = Field(None, max_length=100)


class TokenResponse(CamelModel):
    """Response schema after a new token is issued.

    The token is shown exactly once. Only its SHA-256 hash is stored.
    """

    token: str
    user_id: uuid.UUID
    message: str = "Store this token securely, it cannot be retrieved again"
