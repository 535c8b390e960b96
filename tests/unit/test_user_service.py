"""Unit tests for UserService.

Tests user store operations with mocked asyncpg database and cache.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import asyncpg
import pytest

from src.errors import (
    PostgresCreationError,
    PostgresError,
    PostgresNoUpdateFieldsError,
    PostgresNotFoundError,
    PostgresUniqueViolationError,
)
from src.models.user import NewUser, User, UserRole
from src.services.redis_service import RedisService
from src.services.user_service import CACHE_NAMESPACE, CACHE_SUBKEY, UserService


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def cache():
    """Mock RedisService; every read misses unless told otherwise."""
    cache = AsyncMock()
    cache.get_table_row.return_value = None
    return cache


@pytest.fixture
def user_service(mock_pool, cache):
    pool, _ = mock_pool
    return UserService(pool, cache, cache_ttl=3600)


def _make_user_row(user_id=None, email="a@b.com", role="client"):
    """Create a dict that mimics an asyncpg Record for a users row."""
    now = datetime.now(timezone.utc)
    return {
        "id": user_id or uuid4(),
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": email,
        "role": role,
        "photo": "https://example.com/p.png",
        "is_deleted": False,
        "created_at": now,
        "updated_at": now,
    }


# ---------------------------------------------------------------------------
# get_by_id
# ---------------------------------------------------------------------------

class TestGetById:
    """Tests for UserService.get_by_id."""

    async def test_cache_hit_skips_database(self, user_service, mock_pool, cache):
        _, conn = mock_pool
        user_id = uuid4()
        cache.get_table_row.return_value = {
            "id": str(user_id),
            "email": "a@b.com",
            "role": "admin",
            "first_name": "123",
            "is_deleted": "false",
        }

        user = await user_service.get_by_id(user_id)

        assert isinstance(user, User)
        assert user.id == user_id
        assert user.role == UserRole.ADMIN
        assert user.first_name == "123"
        conn.fetchrow.assert_not_called()

    async def test_cache_miss_reads_and_populates(self, user_service, mock_pool, cache):
        _, conn = mock_pool
        row = _make_user_row()
        conn.fetchrow.return_value = row

        user = await user_service.get_by_id(row["id"])

        assert user.email == "a@b.com"
        cache.set_table_row.assert_awaited_once_with(
            CACHE_NAMESPACE, CACHE_SUBKEY, str(row["id"]), row, 3600
        )

    async def test_returns_none_when_absent(self, user_service, mock_pool, cache):
        _, conn = mock_pool
        conn.fetchrow.return_value = None

        assert await user_service.get_by_id(uuid4()) is None
        cache.set_table_row.assert_not_called()

    async def test_query_excludes_deleted_users(self, user_service, mock_pool):
        _, conn = mock_pool
        conn.fetchrow.return_value = None

        await user_service.get_by_id(uuid4())

        assert "is_deleted = FALSE" in conn.fetchrow.await_args.args[0]

    async def test_driver_errors_are_wrapped(self, user_service, mock_pool):
        _, conn = mock_pool
        conn.fetchrow.side_effect = OSError("connection reset")

        with pytest.raises(PostgresError):
            await user_service.get_by_id(uuid4())


# ---------------------------------------------------------------------------
# lookups
# ---------------------------------------------------------------------------

class TestLookups:
    """Tests for credential and existence lookups."""

    async def test_credentials_by_email(self, user_service, mock_pool):
        _, conn = mock_pool
        user_id = uuid4()
        conn.fetchrow.return_value = {"id": user_id, "password": "$2b$10$hash"}

        credentials = await user_service.get_credentials_by_email("a@b.com")

        assert credentials.id == user_id
        assert credentials.password == "$2b$10$hash"

    async def test_credentials_missing(self, user_service, mock_pool):
        _, conn = mock_pool
        conn.fetchrow.return_value = None

        assert await user_service.get_credentials_by_email("x@y.com") is None

    async def test_email_exists(self, user_service, mock_pool):
        _, conn = mock_pool
        conn.fetchval.return_value = True
        exclude = uuid4()

        assert await user_service.email_exists("a@b.com", exclude_id=exclude) is True
        assert conn.fetchval.await_args.args[1:] == ("a@b.com", exclude)

    async def test_deleted_user_exists(self, user_service, mock_pool):
        _, conn = mock_pool
        conn.fetchval.return_value = False

        assert await user_service.deleted_user_exists(uuid4()) is False


# ---------------------------------------------------------------------------
# add_user
# ---------------------------------------------------------------------------

class TestAddUser:
    """Tests for UserService.add_user."""

    async def test_inserts_and_returns_id(self, user_service, mock_pool):
        _, conn = mock_pool
        new_id = uuid4()
        conn.fetchval.return_value = new_id

        user_id = await user_service.add_user(
            NewUser(email="a@b.com", password="$2b$10$hash", role=UserRole.CLIENT)
        )

        assert user_id == new_id
        args = conn.fetchval.await_args.args
        assert "INSERT INTO users" in args[0]
        assert args[3] == "$2b$10$hash"
        assert args[5] == "client"

    async def test_duplicate_email_raises_unique_violation(self, user_service, mock_pool):
        _, conn = mock_pool
        conn.fetchval.side_effect = asyncpg.UniqueViolationError("users_active_email_key")

        with pytest.raises(PostgresUniqueViolationError):
            await user_service.add_user(
                NewUser(email="a@b.com", password="h", role=UserRole.CLIENT)
            )

    async def test_missing_id_raises(self, user_service, mock_pool):
        _, conn = mock_pool
        conn.fetchval.return_value = None

        with pytest.raises(PostgresCreationError):
            await user_service.add_user(
                NewUser(email="a@b.com", password="h", role=UserRole.CLIENT)
            )


# ---------------------------------------------------------------------------
# mutations
# ---------------------------------------------------------------------------

class TestMutations:
    """Tests for update and (un)delete; each evicts the cached row."""

    async def test_update_builds_set_clause_and_evicts(self, user_service, mock_pool, cache):
        _, conn = mock_pool
        conn.execute.return_value = "UPDATE 1"
        user_id = uuid4()

        await user_service.update_user(user_id, {"first_name": "Bob", "email": "b@c.com"})

        query, *params = conn.execute.await_args.args
        assert "first_name = $1" in query
        assert "email = $2" in query
        assert "id = $3" in query
        assert params == ["Bob", "b@c.com", user_id]
        cache.delete_table_row.assert_awaited_once_with(
            CACHE_NAMESPACE, CACHE_SUBKEY, str(user_id)
        )

    async def test_update_ignores_unknown_and_empty_fields(self, user_service, mock_pool):
        _, conn = mock_pool

        with pytest.raises(PostgresNoUpdateFieldsError):
            await user_service.update_user(uuid4(), {"first_name": None, "role": "admin"})
        conn.execute.assert_not_called()

    async def test_update_stores_empty_last_name(self, user_service, mock_pool):
        _, conn = mock_pool
        conn.execute.return_value = "UPDATE 1"
        user_id = uuid4()

        await user_service.update_user(user_id, {"last_name": ""})

        query, *params = conn.execute.await_args.args
        assert "last_name = $1" in query
        assert params == ["", user_id]

    async def test_update_email_collision(self, user_service, mock_pool, cache):
        _, conn = mock_pool
        conn.execute.side_effect = asyncpg.UniqueViolationError("users_active_email_key")

        with pytest.raises(PostgresUniqueViolationError):
            await user_service.update_user(uuid4(), {"email": "taken@b.com"})
        cache.delete_table_row.assert_not_called()

    async def test_update_missing_user(self, user_service, mock_pool, cache):
        _, conn = mock_pool
        conn.execute.return_value = "UPDATE 0"

        with pytest.raises(PostgresNotFoundError):
            await user_service.update_user(uuid4(), {"last_name": "X"})
        cache.delete_table_row.assert_not_called()

    async def test_soft_delete_evicts(self, user_service, mock_pool, cache):
        _, conn = mock_pool
        conn.execute.return_value = "UPDATE 1"
        user_id = uuid4()

        await user_service.soft_delete_user(user_id)

        assert "is_deleted = TRUE" in conn.execute.await_args.args[0]
        cache.delete_table_row.assert_awaited_once()

    async def test_undelete_evicts(self, user_service, mock_pool, cache):
        _, conn = mock_pool
        conn.execute.return_value = "UPDATE 1"
        user_id = uuid4()

        await user_service.undelete_user(user_id)

        assert "is_deleted = FALSE" in conn.execute.await_args.args[0]
        cache.delete_table_row.assert_awaited_once_with(
            CACHE_NAMESPACE, CACHE_SUBKEY, str(user_id)
        )

    async def test_undelete_missing_user(self, user_service, mock_pool):
        _, conn = mock_pool
        conn.execute.return_value = "UPDATE 0"

        with pytest.raises(PostgresNotFoundError):
            await user_service.undelete_user(uuid4())


# ---------------------------------------------------------------------------
# cache-aside over a real RedisService
# ---------------------------------------------------------------------------

class FakeRedis:
    """Dict-backed stand-in for the redis.asyncio hash commands the cache uses."""

    def __init__(self):
        self.hashes: dict[str, dict[str, str]] = {}

    async def hset(self, key, mapping):
        self.hashes.setdefault(key, {}).update(mapping)

    async def expire(self, key, ttl):
        return key in self.hashes

    async def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    async def delete(self, key):
        return 1 if self.hashes.pop(key, None) is not None else 0


class TestCacheConsistency:
    """Reads after a mutation never return the stale cached row."""

    @pytest.fixture
    def cached_service(self, mock_pool):
        pool, _ = mock_pool
        return UserService(pool, RedisService(FakeRedis()), cache_ttl=3600)

    async def test_update_then_read_returns_new_values(self, cached_service, mock_pool):
        _, conn = mock_pool
        user_id = uuid4()
        before = _make_user_row(user_id)
        after = {**before, "first_name": "Grace", "last_name": ""}
        conn.fetchrow.side_effect = [before, after]
        conn.execute.return_value = "UPDATE 1"

        assert (await cached_service.get_by_id(user_id)).first_name == "Ada"
        assert (await cached_service.get_by_id(user_id)).first_name == "Ada"
        assert conn.fetchrow.await_count == 1

        await cached_service.update_user(user_id, {"first_name": "Grace", "last_name": ""})
        user = await cached_service.get_by_id(user_id)

        assert conn.fetchrow.await_count == 2
        assert user.first_name == "Grace"
        assert user.last_name == ""

    async def test_soft_delete_then_read_misses(self, cached_service, mock_pool):
        _, conn = mock_pool
        user_id = uuid4()
        conn.fetchrow.side_effect = [_make_user_row(user_id), None]
        conn.execute.return_value = "UPDATE 1"

        assert await cached_service.get_by_id(user_id) is not None
        await cached_service.soft_delete_user(user_id)

        assert await cached_service.get_by_id(user_id) is None

    async def test_undelete_then_read_hits_database(self, cached_service, mock_pool):
        _, conn = mock_pool
        user_id = uuid4()
        conn.fetchrow.side_effect = [
            _make_user_row(user_id),
            _make_user_row(user_id, email="new@b.com"),
        ]
        conn.execute.return_value = "UPDATE 1"

        await cached_service.get_by_id(user_id)
        await cached_service.undelete_user(user_id)
        user = await cached_service.get_by_id(user_id)

        assert conn.fetchrow.await_count == 2
        assert user.email == "new@b.com"
