"""Services package exports."""

from src.services.account_service import AccountService
from src.services.auth_service import AuthService
from src.services.crypto_service import EncryptionService
from src.services.logging_service import configure_logging, get_logger
from src.services.redis_service import RedisService
from src.services.session_service import SessionService
from src.services.session_store import SessionStore
from src.services.user_service import UserService

__all__ = [
    "AccountService",
    "AuthService",
    "EncryptionService",
    "RedisService",
    "SessionService",
    "SessionStore",
    "UserService",
    "configure_logging",
    "get_logger",
]
