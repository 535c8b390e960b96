"""User store: `users` table access with cache-aside reads."""

from typing import Any, Optional
from uuid import UUID

import asyncpg
import structlog

from src.errors import (
    PostgresCreationError,
    PostgresNoUpdateFieldsError,
    PostgresNotFoundError,
    PostgresUniqueViolationError,
    postgres_errors,
)
from src.models.user import NewUser, User, UserCredentials
from src.services.redis_service import RedisService

logger = structlog.get_logger(__name__)

CACHE_NAMESPACE = "user"
CACHE_SUBKEY = "details"
STRING_FIELDS = ("id", "first_name", "last_name", "email", "role", "photo")
UPDATABLE_FIELDS = ("first_name", "last_name", "email")

USER_COLUMNS = """
    id, first_name, last_name, email, role, photo, is_deleted, created_at, updated_at
"""


class UserService:
    """Service for user CRUD operations.

    Reads by id go through the cache first; every mutation evicts the
    cached row. Soft-deleted users are invisible to lookups other than
    `deleted_user_exists`.
    """

    def __init__(self, pool: asyncpg.Pool, cache: RedisService, cache_ttl: int):
        self.pool = pool
        self.cache = cache
        self.cache_ttl = cache_ttl

    async def _evict(self, user_id: UUID) -> None:
        await self.cache.delete_table_row(CACHE_NAMESPACE, CACHE_SUBKEY, str(user_id))

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        """Get an active user by UUID.

        Args:
            user_id: User UUID

        Returns:
            User model or None if not found or soft-deleted
        """
        cached = await self.cache.get_table_row(
            CACHE_NAMESPACE, CACHE_SUBKEY, str(user_id), preserve=STRING_FIELDS
        )
        if cached is not None:
            return User(**cached)

        async with postgres_errors():
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    SELECT {USER_COLUMNS}
                    FROM users
                    WHERE id = $1 AND is_deleted = FALSE
                    LIMIT 1
                    """,
                    user_id,
                )

        if row is None:
            return None

        data: dict[str, Any] = dict(row)
        await self.cache.set_table_row(
            CACHE_NAMESPACE, CACHE_SUBKEY, str(user_id), data, self.cache_ttl
        )
        return User(**data)

    async def get_credentials_by_email(self, email: str) -> Optional[UserCredentials]:
        """Get id and password hash of an active user by exact email.

        Args:
            email: Email to look up (case-sensitive)

        Returns:
            UserCredentials or None if not found
        """
        async with postgres_errors():
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT id, password
                    FROM users
                    WHERE email = $1 AND is_deleted = FALSE
                    LIMIT 1
                    """,
                    email,
                )

        if row is None:
            return None
        return UserCredentials(id=row["id"], password=row["password"])

    async def email_exists(self, email: str, exclude_id: Optional[UUID] = None) -> bool:
        """Check whether an active user already has this email."""
        async with postgres_errors():
            async with self.pool.acquire() as conn:
                exists = await conn.fetchval(
                    """
                    SELECT EXISTS (
                        SELECT 1 FROM users
                        WHERE email = $1 AND is_deleted = FALSE
                          AND ($2::uuid IS NULL OR id <> $2::uuid)
                    )
                    """,
                    email,
                    exclude_id,
                )
        return bool(exists)

    async def deleted_user_exists(self, user_id: UUID) -> bool:
        """Check whether a soft-deleted user with this id exists."""
        async with postgres_errors():
            async with self.pool.acquire() as conn:
                exists = await conn.fetchval(
                    """
                    SELECT EXISTS (
                        SELECT 1 FROM users WHERE id = $1 AND is_deleted = TRUE
                    )
                    """,
                    user_id,
                )
        return bool(exists)

    async def add_user(self, user: NewUser) -> UUID:
        """Insert a user whose password is already hashed.

        Returns:
            The new user's UUID

        Raises:
            PostgresCreationError: If the insert returned no id
            PostgresUniqueViolationError: If an active user already has the email
        """
        async with postgres_errors():
            async with self.pool.acquire() as conn:
                try:
                    user_id = await conn.fetchval(
                        """
                        INSERT INTO users (first_name, last_name, password, email, role, photo)
                        VALUES ($1, $2, $3, $4, $5, $6)
                        RETURNING id
                        """,
                        user.first_name,
                        user.last_name,
                        user.password,
                        user.email,
                        user.role.value,
                        user.photo,
                    )
                except asyncpg.UniqueViolationError as e:
                    raise PostgresUniqueViolationError(str(e)) from e

        if user_id is None:
            raise PostgresCreationError("Failed to create user.")

        logger.info("user_created", user_id=str(user_id), role=user.role.value)
        return user_id

    async def update_user(self, user_id: UUID, changes: dict[str, Any]) -> None:
        """Update profile columns of an active user.

        Args:
            user_id: UUID of the user to update
            changes: Column/value pairs; only first_name, last_name and email.
                None means "leave unchanged"; an empty string is stored.

        Raises:
            PostgresNoUpdateFieldsError: If no updatable column is given
            PostgresNotFoundError: If the user does not exist
            PostgresUniqueViolationError: If the new email is already taken
        """
        set_clauses = []
        params: list[Any] = []
        for column in UPDATABLE_FIELDS:
            if changes.get(column) is not None:
                params.append(changes[column])
                set_clauses.append(f"{column} = ${len(params)}")

        if not set_clauses:
            raise PostgresNoUpdateFieldsError()

        params.append(user_id)
        query = f"""
            UPDATE users
            SET {', '.join(set_clauses)}
            WHERE id = ${len(params)} AND is_deleted = FALSE
        """

        async with postgres_errors():
            async with self.pool.acquire() as conn:
                try:
                    result = await conn.execute(query, *params)
                except asyncpg.UniqueViolationError as e:
                    raise PostgresUniqueViolationError(str(e)) from e

        if result == "UPDATE 0":
            raise PostgresNotFoundError()

        await self._evict(user_id)
        logger.info(
            "user_updated",
            user_id=str(user_id),
            fields_updated=[c.split(" = ")[0] for c in set_clauses],
        )

    async def soft_delete_user(self, user_id: UUID) -> None:
        """Flag an active user as deleted.

        Raises:
            PostgresNotFoundError: If no active user has this id
        """
        async with postgres_errors():
            async with self.pool.acquire() as conn:
                result = await conn.execute(
                    "UPDATE users SET is_deleted = TRUE WHERE id = $1 AND is_deleted = FALSE",
                    user_id,
                )

        if result == "UPDATE 0":
            raise PostgresNotFoundError()

        await self._evict(user_id)
        logger.info("user_soft_deleted", user_id=str(user_id))

    async def undelete_user(self, user_id: UUID) -> None:
        """Clear the deleted flag of a soft-deleted user.

        Raises:
            PostgresNotFoundError: If no soft-deleted user has this id
        """
        async with postgres_errors():
            async with self.pool.acquire() as conn:
                result = await conn.execute(
                    "UPDATE users SET is_deleted = FALSE WHERE id = $1 AND is_deleted = TRUE",
                    user_id,
                )

        if result == "UPDATE 0":
            raise PostgresNotFoundError()

        await self._evict(user_id)
        logger.info("user_undeleted", user_id=str(user_id))
