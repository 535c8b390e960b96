"""Redis service: hashed-key row cache with TTL for the cache-aside stores."""

import hashlib
import json
import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, Optional
from uuid import UUID

import redis.asyncio as redis
import structlog

from src.config import get_settings
from src.errors import redis_errors

logger = structlog.get_logger(__name__)

_NUMERIC = re.compile(r"^-?\d+(\.\d+)?$")

# Global Redis client
_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create the Redis client.

    Returns:
        Redis client or None if connection fails (graceful degradation)
    """
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    settings = get_settings()

    client: Optional[redis.Redis] = None
    try:
        client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        # Test connection
        await client.ping()
    except Exception as e:
        logger.warning("redis_connection_failed", error=str(e))
        if client is not None:
            await client.aclose()
        return None

    _redis_client = client
    logger.info("redis_connected", url=settings.redis_url.split("@")[-1])
    return _redis_client


async def close_redis() -> None:
    """Close the Redis connection."""
    global _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("redis_connection_closed")


def _to_field(value: Any) -> str:
    """Serialize a row value into a Redis hash field."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, UUID):
        return str(value)
    return str(value)


def _coerce_scalar(value: str) -> Any:
    """Numeric-looking strings become int/float; everything else stays a string."""
    if _NUMERIC.match(value):
        return float(value) if "." in value else int(value)
    return value


def _parse_element(value: str) -> Any:
    """Decode an array element: JSON, then numeric, then boolean, then string."""
    try:
        return json.loads(value)
    except (ValueError, TypeError):
        pass
    if value and _NUMERIC.match(value):
        return _coerce_scalar(value)
    if value == "true":
        return True
    if value == "false":
        return False
    return value


class RedisService:
    """Hash-row cache keyed by `{namespace}:{subkey}:{sha256(row_key)}`.

    When no client is available every read is a miss and every write is a
    no-op. Errors raised by the client are wrapped in RedisError.
    """

    def __init__(self, client: Optional[redis.Redis] = None):
        self.client = client

    async def ping(self) -> bool:
        """Check that the client this cache uses is connected.

        Returns:
            False when there is no client or the ping fails
        """
        if self.client is None:
            return False

        try:
            return bool(await self.client.ping())
        except Exception as e:
            logger.warning("redis_ping_failed", error=str(e))
            return False

    @staticmethod
    def cache_key(namespace: str, subkey: str, row_key: str) -> str:
        """Build the cache key for a row.

        Args:
            namespace: Entity namespace, e.g. "user"
            subkey: Projection name, e.g. "details"
            row_key: Natural key of the row (hashed)

        Returns:
            Redis key string
        """
        hashed = hashlib.sha256(str(row_key).encode("utf-8")).hexdigest()
        return f"{namespace}:{subkey}:{hashed}"

    async def set_table_row(
        self,
        namespace: str,
        subkey: str,
        row_key: str,
        row: dict[str, Any],
        ttl: int,
    ) -> None:
        """Store a row as a flat hash of strings, with TTL when positive.

        None values are omitted so they read back as absent.
        """
        if self.client is None:
            return

        key = self.cache_key(namespace, subkey, row_key)
        mapping = {k: _to_field(v) for k, v in row.items() if v is not None}
        if not mapping:
            return

        async with redis_errors():
            await self.client.hset(key, mapping=mapping)
            if ttl > 0:
                await self.client.expire(key, ttl)

        logger.debug("cache_row_set", namespace=namespace, subkey=subkey, ttl=ttl)

    async def get_table_row(
        self,
        namespace: str,
        subkey: str,
        row_key: str,
        preserve: Iterable[str] = (),
    ) -> Optional[dict[str, Any]]:
        """Read a cached row.

        Args:
            namespace: Entity namespace
            subkey: Projection name
            row_key: Natural key of the row
            preserve: Field names that are never coerced to numbers

        Returns:
            Row dict, or None on a cache miss
        """
        if self.client is None:
            return None

        key = self.cache_key(namespace, subkey, row_key)
        async with redis_errors():
            data = await self.client.hgetall(key)

        if not data:
            return None

        keep = set(preserve)
        return {k: v if k in keep else _coerce_scalar(v) for k, v in data.items()}

    async def delete_table_row(self, namespace: str, subkey: str, row_key: str) -> None:
        """Evict a cached row."""
        if self.client is None:
            return

        key = self.cache_key(namespace, subkey, row_key)
        async with redis_errors():
            await self.client.delete(key)

    async def set_array_data(
        self,
        namespace: str,
        subkey: str,
        row_key: str,
        items: list[Any],
        ttl: Optional[int] = None,
    ) -> None:
        """Store a list as a hash of index fields plus a `length` field."""
        if self.client is None:
            return

        key = self.cache_key(namespace, subkey, row_key)
        mapping = {"length": str(len(items))}
        for index, item in enumerate(items):
            if isinstance(item, (dict, list)):
                mapping[str(index)] = json.dumps(item, default=str)
            else:
                mapping[str(index)] = _to_field(item)

        async with redis_errors():
            await self.client.hset(key, mapping=mapping)
            if ttl and ttl > 0:
                await self.client.expire(key, ttl)

    async def get_array_data(
        self, namespace: str, subkey: str, row_key: str
    ) -> Optional[list[Any]]:
        """Read a list stored by set_array_data, or None on a cache miss."""
        if self.client is None:
            return None

        key = self.cache_key(namespace, subkey, row_key)
        async with redis_errors():
            data = await self.client.hgetall(key)

        if not data:
            return None

        length = int(data.get("length") or 0)
        return [_parse_element(data.get(str(i), "")) for i in range(length)]

    async def delete_array_data(self, namespace: str, subkey: str, row_key: str) -> None:
        """Evict a cached list."""
        await self.delete_table_row(namespace, subkey, row_key)
