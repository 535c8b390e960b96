"""Session and token models."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class Session(BaseModel):
    """A server-side login session holding the sealed refresh token."""

    id: UUID
    user_id: UUID
    token: str
    user_agent: Optional[str] = None
    expires_at: datetime
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TokenPair(BaseModel):
    """Access and refresh tokens issued at login.

    Attributes:
        access_token: Short-lived JWT signed with the access key
        refresh_token: JWT signed with the refresh key, stored sealed in the session
        role: Role claim carried by both tokens
        user_id: Owner of the tokens
    """

    access_token: str
    refresh_token: str
    role: str
    user_id: UUID


class AuthCredentials(BaseModel):
    """Identity extracted from a verified bearer token."""

    id: UUID
    role: str
