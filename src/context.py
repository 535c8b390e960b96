"""Application context: every long-lived collaborator, wired once at startup."""

from dataclasses import dataclass
from typing import Optional

import asyncpg
import redis.asyncio as redis

from src.config import Settings
from src.services.account_service import AccountService
from src.services.auth_service import AuthService
from src.services.crypto_service import EncryptionService
from src.services.redis_service import RedisService
from src.services.session_service import SessionService
from src.services.session_store import SessionStore
from src.services.user_service import UserService


@dataclass(frozen=True)
class AppContext:
    """Services shared by all requests."""

    settings: Settings
    cache: RedisService
    auth_service: AuthService
    accounts: AccountService
    sessions: SessionService


def build_context(
    settings: Settings,
    pool: asyncpg.Pool,
    redis_client: Optional[redis.Redis],
) -> AppContext:
    """Wire stores and services around the shared pool and cache client."""
    cache = RedisService(redis_client)
    users = UserService(pool, cache, settings.cache_ttl)
    session_store = SessionStore(pool, cache, settings.cache_ttl)
    auth_service = AuthService(settings)
    encryption = EncryptionService(settings.cookie_key)

    return AppContext(
        settings=settings,
        cache=cache,
        auth_service=auth_service,
        accounts=AccountService(settings, users, session_store, auth_service),
        sessions=SessionService(settings, session_store, users, auth_service, encryption),
    )
