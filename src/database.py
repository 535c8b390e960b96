"""Database connection pool and migration management."""

import re
from pathlib import Path
from typing import Optional

import asyncpg
import structlog

from src.config import get_settings

logger = structlog.get_logger(__name__)

# Global connection pool
_pool: Optional[asyncpg.Pool] = None


async def get_pool() -> asyncpg.Pool:
    """Get the database connection pool.

    Returns:
        asyncpg connection pool

    Raises:
        RuntimeError: If pool is not initialized
    """
    if _pool is None:
        raise RuntimeError("Database pool not initialized. Call init_database() first.")
    return _pool


async def init_database() -> asyncpg.Pool:
    """Initialize the database connection pool.

    Returns:
        asyncpg connection pool
    """
    global _pool

    if _pool is not None:
        return _pool

    settings = get_settings()

    try:
        _pool = await asyncpg.create_pool(
            settings.postgres_url,
            min_size=2,
            max_size=10,
            command_timeout=60,
        )
        logger.info("database_pool_created", min_size=2, max_size=10)
        return _pool
    except Exception as e:
        logger.error("database_pool_creation_failed", error=str(e))
        raise


async def close_database() -> None:
    """Close the database connection pool."""
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("database_pool_closed")


def _migration_order(path: Path) -> tuple[int, str]:
    """Sort key: the numeric prefix before the first '-', then the name."""
    prefix = path.name.split("-")[0]
    match = re.match(r"\d+", prefix)
    return (int(match.group()) if match else 0, path.name)


def combine_migrations(migrations_dir: Path) -> str:
    """Concatenate numerically-prefixed SQL files into one script.

    Args:
        migrations_dir: Directory containing files like `001-create-users.sql`

    Returns:
        Combined SQL, each file preceded by a `-- File:` header
    """
    files = sorted(migrations_dir.glob("*.sql"), key=_migration_order)
    logger.info("migration_files_found", count=len(files), path=str(migrations_dir))

    parts = []
    for migration_file in files:
        parts.append(f"-- File: {migration_file.name}\n{migration_file.read_text()}\n\n")
    return "".join(parts)


async def run_migrations(
    migrations_dir: Optional[Path] = None,
    output_path: Optional[Path] = None,
) -> None:
    """Apply all migrations as one script inside a single transaction.

    The combined script is written to `output_path` for inspection before it
    runs. Any failing statement rolls back the whole script.

    Raises:
        Exception: Whatever the driver raised; nothing is partially applied
    """
    settings = get_settings()
    migrations_dir = migrations_dir or settings.migrations_dir
    output_path = output_path or settings.migration_output

    if not migrations_dir.exists():
        logger.warning("migrations_directory_not_found", path=str(migrations_dir))
        return

    sql = combine_migrations(migrations_dir)
    if not sql:
        logger.info("no_migrations_found")
        return

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(sql)
    logger.info("combined_migration_written", path=str(output_path))

    pool = await get_pool()

    async with pool.acquire() as conn:
        try:
            async with conn.transaction():
                await conn.execute(sql)
        except Exception as e:
            logger.error("migration_failed", path=str(output_path), error=str(e))
            raise

    logger.info("migration_applied", path=str(output_path))


async def health_check() -> bool:
    """Check database connectivity.

    Returns:
        True if database is healthy, False otherwise
    """
    try:
        pool = await get_pool()
        async with pool.acquire() as conn:
            result = await conn.fetchval("SELECT 1")
            return result == 1
    except Exception as e:
        logger.error("database_health_check_failed", error=str(e))
        return False
