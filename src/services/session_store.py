"""Session store: `sessions` table access with cache-aside reads."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import asyncpg
import structlog

from src.errors import PostgresCreationError, PostgresNotFoundError, postgres_errors
from src.models.session import Session
from src.services.redis_service import RedisService

logger = structlog.get_logger(__name__)

CACHE_NAMESPACE = "session"
CACHE_SUBKEY = "details"
STRING_FIELDS = ("id", "user_id", "token", "user_agent")


class SessionStore:
    """CRUD for login sessions. Rows are never updated in place."""

    def __init__(self, pool: asyncpg.Pool, cache: RedisService, cache_ttl: int):
        self.pool = pool
        self.cache = cache
        self.cache_ttl = cache_ttl

    async def _evict(self, session_ids: list[UUID]) -> None:
        for session_id in session_ids:
            await self.cache.delete_table_row(CACHE_NAMESPACE, CACHE_SUBKEY, str(session_id))

    async def get_session(self, session_id: UUID) -> Optional[Session]:
        """Get a session by id, cache first.

        Args:
            session_id: Session UUID

        Returns:
            Session model or None if not found
        """
        cached = await self.cache.get_table_row(
            CACHE_NAMESPACE, CACHE_SUBKEY, str(session_id), preserve=STRING_FIELDS
        )
        if cached is not None:
            return Session(**cached)

        async with postgres_errors():
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT id, user_id, token, user_agent, expires_at, created_at, updated_at
                    FROM sessions
                    WHERE id = $1
                    LIMIT 1
                    """,
                    session_id,
                )

        if row is None:
            return None

        data: dict[str, Any] = dict(row)
        await self.cache.set_table_row(
            CACHE_NAMESPACE, CACHE_SUBKEY, str(session_id), data, self.cache_ttl
        )
        return Session(**data)

    async def add_session(
        self,
        user_id: UUID,
        token: str,
        user_agent: Optional[str],
        expires_at: datetime,
    ) -> UUID:
        """Insert a session row.

        Returns:
            The new session's UUID

        Raises:
            PostgresCreationError: If the insert returned no id
        """
        async with postgres_errors():
            async with self.pool.acquire() as conn:
                session_id = await conn.fetchval(
                    """
                    INSERT INTO sessions (user_id, token, user_agent, expires_at)
                    VALUES ($1, $2, $3, $4)
                    RETURNING id
                    """,
                    user_id,
                    token,
                    user_agent,
                    expires_at,
                )

        if session_id is None:
            raise PostgresCreationError("Session not created")
        return session_id

    async def session_exists_for_user(self, user_id: UUID) -> bool:
        """Check whether the user has at least one session."""
        async with postgres_errors():
            async with self.pool.acquire() as conn:
                exists = await conn.fetchval(
                    "SELECT EXISTS (SELECT 1 FROM sessions WHERE user_id = $1)",
                    user_id,
                )
        return bool(exists)

    async def delete_session(self, session_id: UUID, user_id: UUID) -> None:
        """Delete one session owned by `user_id` and evict it from the cache.

        Raises:
            PostgresNotFoundError: If no such session exists for the user
        """
        async with postgres_errors():
            async with self.pool.acquire() as conn:
                result = await conn.execute(
                    "DELETE FROM sessions WHERE id = $1 AND user_id = $2",
                    session_id,
                    user_id,
                )

        if result == "DELETE 0":
            raise PostgresNotFoundError("Session not found")

        await self._evict([session_id])
        logger.info("session_deleted", session_id=str(session_id), user_id=str(user_id))

    async def delete_sessions_by_user(self, user_id: UUID) -> int:
        """Delete every session of a user and evict them from the cache.

        Returns:
            Number of sessions deleted
        """
        async with postgres_errors():
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    "DELETE FROM sessions WHERE user_id = $1 RETURNING id",
                    user_id,
                )

        session_ids = [row["id"] for row in rows]
        await self._evict(session_ids)
        logger.info("user_sessions_deleted", user_id=str(user_id), count=len(session_ids))
        return len(session_ids)

    async def delete_expired_sessions(self) -> int:
        """Delete every expired session and evict them from the cache.

        Returns:
            Number of sessions deleted
        """
        async with postgres_errors():
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    "DELETE FROM sessions WHERE expires_at < NOW() RETURNING id"
                )

        session_ids = [row["id"] for row in rows]
        await self._evict(session_ids)
        if session_ids:
            logger.info("expired_sessions_deleted", count=len(session_ids))
        return len(session_ids)
