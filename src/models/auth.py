"""Auth and user request/response models with validation."""

import re
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

NAME_PATTERN = re.compile(r"^[a-zA-Z\s\-']*$")
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
PASSWORD_PATTERN = re.compile(
    r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,}$"
)


def _check_name(field: str, v: Optional[str]) -> Optional[str]:
    if v is not None and not NAME_PATTERN.match(v):
        raise ValueError(
            f'"{field}" must contain only letters, spaces, hyphens, and apostrophes'
        )
    return v


def _check_email(v: str) -> str:
    if not EMAIL_PATTERN.match(v):
        raise ValueError('"email" must be a valid email')
    return v


def _check_password(v: str) -> str:
    if not PASSWORD_PATTERN.match(v):
        raise ValueError(
            '"password" must contain at least one lowercase letter, one uppercase '
            "letter, one number, and one special character"
        )
    return v


class RegisterRequest(BaseModel):
    """New account details.

    Attributes:
        first_name: Given name (letters, spaces, hyphens, apostrophes; max 50)
        last_name: Family name (same rules, may be empty)
        email: Login email (max 100)
        password: 8-128 chars with lower, upper, digit and one of @$!%*?&
        confirm_password: Must equal password when supplied
        photo: Profile photo URL; the configured default is used when absent
    """

    first_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(default=None, max_length=50)
    email: str = Field(..., max_length=100)
    password: str = Field(..., min_length=8, max_length=128)
    confirm_password: Optional[str] = None
    photo: Optional[str] = None

    @field_validator("first_name")
    @classmethod
    def first_name_valid_chars(cls, v: Optional[str]) -> Optional[str]:
        return _check_name("first_name", v)

    @field_validator("last_name")
    @classmethod
    def last_name_valid_chars(cls, v: Optional[str]) -> Optional[str]:
        return _check_name("last_name", v)

    @field_validator("email")
    @classmethod
    def email_valid(cls, v: str) -> str:
        return _check_email(v)

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        return _check_password(v)

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        """Reject a confirmation that differs from the password."""
        if self.confirm_password is not None and self.confirm_password != self.password:
            raise ValueError("Passwords do not match")
        return self


class LoginRequest(BaseModel):
    """Login credentials."""

    email: str = Field(..., max_length=100)
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("email")
    @classmethod
    def email_valid(cls, v: str) -> str:
        return _check_email(v)

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        return _check_password(v)


class UpdateUserRequest(BaseModel):
    """Profile update; the current password must be re-entered.

    Only provided, non-empty fields are updated.
    """

    first_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(default=None, max_length=50)
    email: Optional[str] = Field(default=None, max_length=100)
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("first_name")
    @classmethod
    def first_name_valid_chars(cls, v: Optional[str]) -> Optional[str]:
        return _check_name("first_name", v)

    @field_validator("last_name")
    @classmethod
    def last_name_valid_chars(cls, v: Optional[str]) -> Optional[str]:
        return _check_name("last_name", v)

    @field_validator("email")
    @classmethod
    def email_valid(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _check_email(v)

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        return _check_password(v)

    def changes(self) -> dict[str, str]:
        """Profile columns to update; omitted fields are left out, "" is kept."""
        fields = {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
        }
        return {k: v for k, v in fields.items() if v is not None}


class ApiResponse(BaseModel):
    """Success envelope shared by every endpoint."""

    status: str = "success"
    message: str
    data: Optional[dict[str, Any]] = None


class RegisterData(BaseModel):
    user_id: UUID


class LoginData(BaseModel):
    session_id: UUID
    access_token: str


class RefreshData(BaseModel):
    access_token: str
