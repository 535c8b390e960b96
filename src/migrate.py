"""
CLI entry point for database migrations.

Usage:
    python -m src.migrate [OPTIONS]

Combines every `migrations/NNN-name.sql` file into one script, writes it to
the output path and applies it inside a single transaction.

Exit Codes:
    0 - Migrations applied (or nothing to apply)
    1 - Migration failed; nothing was applied
"""

import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

from src.config import get_settings
from src.database import close_database, combine_migrations, init_database, run_migrations
from src.services.logging_service import configure_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="python -m src.migrate",
        description="Apply SQL migrations to the accounts database.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Apply migrations from the default directory
    python -m src.migrate

    # Write the combined script without touching the database
    python -m src.migrate --dry-run

    # Use another directory and output file
    python -m src.migrate --dir db/sql --output /tmp/combined.sql

Exit Codes:
    0 - Migrations applied
    1 - Migration failed
    """,
    )

    parser.add_argument(
        "--dir",
        type=Path,
        default=None,
        help="Directory of numbered .sql files (default: MIGRATIONS_DIR setting)",
    )

    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Where to write the combined script (default: MIGRATION_OUTPUT setting)",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only write the combined script, do not connect to the database",
    )

    return parser.parse_args(argv)


async def _apply(migrations_dir: Path, output_path: Path) -> None:
    await init_database()
    try:
        await run_migrations(migrations_dir, output_path)
    finally:
        await close_database()


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for CLI.

    Returns:
        Exit code: 0 on success, 1 on failure.
    """
    load_dotenv()
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)

    migrations_dir = args.dir or settings.migrations_dir
    output_path = args.output or settings.migration_output

    if args.dry_run:
        if not migrations_dir.exists():
            print(f"Migrations directory not found: {migrations_dir}", file=sys.stderr)
            return 1
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(combine_migrations(migrations_dir))
        print(f"Combined migration written to {output_path}")
        return 0

    try:
        asyncio.run(_apply(migrations_dir, output_path))
    except Exception as e:
        print(f"Migration failed: {e}", file=sys.stderr)
        return 1

    print("Migrations applied successfully")
    return 0


if __name__ == "__main__":
    sys.exit(main())
