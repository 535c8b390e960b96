"""User models."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class UserRole(str, Enum):
    """Roles a user can register under."""

    CLIENT = "client"
    ADMIN = "admin"
    MODERATOR = "moderator"


class User(BaseModel):
    """A registered user, without credentials."""

    id: UUID
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    role: UserRole
    photo: Optional[str] = None
    is_deleted: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class NewUser(BaseModel):
    """Values inserted for a new user; `password` is already hashed."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    password: str
    role: UserRole
    photo: Optional[str] = None


class UserCredentials(BaseModel):
    """Id and password hash looked up by email at login."""

    id: UUID
    password: str
