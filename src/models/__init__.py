"""Models package exports."""

from src.models.auth import LoginRequest, RegisterRequest, UpdateUserRequest
from src.models.session import AuthCredentials, Session, TokenPair
from src.models.user import NewUser, User, UserCredentials, UserRole

__all__ = [
    "AuthCredentials",
    "LoginRequest",
    "NewUser",
    "RegisterRequest",
    "Session",
    "TokenPair",
    "UpdateUserRequest",
    "User",
    "UserCredentials",
    "UserRole",
]
