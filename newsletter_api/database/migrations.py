# newsletter_api/database/migrations.py
import logging
import os
from pathlib import Path
from typing import List, Optional, Tuple

import asyncpg

logger = logging.getLogger(__name__)

DEFAULT_MIGRATIONS_DIR = Path(
    os.getenv("APP_MIGRATIONS_DIR", Path(__file__).resolve().parent.parent.parent / "migrations")
)


def discover_migrations(directory: Path) -> List[Tuple[str, Path]]:
    """Return (version, path) pairs for every *.sql file, in filename order.

    The version is the leading part of the filename up to the first
    underscore, e.g. "20210810014719" for
    20210810014719_create_subscription_tokens_table.sql.
    """
    migrations = []
    for path in sorted(directory.glob("*.sql")):
        version = path.stem.split("_", 1)[0]
        migrations.append((version, path))
    return migrations


async def applied_versions(connection: asyncpg.Connection) -> List[str]:
    await connection.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version TEXT PRIMARY KEY,
            description TEXT NOT NULL,
            applied_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    rows = await connection.fetch("SELECT version FROM schema_migrations ORDER BY version")
    return [row["version"] for row in rows]


async def run_migrations(
    connection: asyncpg.Connection, directory: Optional[Path] = None
) -> List[str]:
    """Apply pending migrations, each in its own transaction. Returns the applied versions."""
    directory = directory or DEFAULT_MIGRATIONS_DIR
    done = set(await applied_versions(connection))
    applied = []

    for version, path in discover_migrations(directory):
        if version in done:
            continue

        description = path.stem.split("_", 1)[-1].replace("_", " ")
        logger.info(f"Applying migration {version}: {description}")
        try:
            async with connection.transaction():
                await connection.execute(path.read_text())
                await connection.execute(
                    "INSERT INTO schema_migrations (version, description) VALUES ($1, $2)",
                    version,
                    description,
                )
        except Exception as e:
            logger.error(f"Migration {version} failed: {e}")
            raise

        applied.append(version)

    if applied:
        logger.info(f"Applied {len(applied)} migration(s)")
    else:
        logger.info("Database schema is up to date")
    return applied


async def create_database(connection: asyncpg.Connection, database_name: str):
    """Create a database; the connection must not be bound to it"""
    # identifiers cannot be bound as parameters
    quoted = '"' + database_name.replace('"', '""') + '"'
    await connection.execute(f"CREATE DATABASE {quoted}")
    logger.info(f"Created database {database_name}")


async def drop_database(connection: asyncpg.Connection, database_name: str):
    quoted = '"' + database_name.replace('"', '""') + '"'
    await connection.execute(f"DROP DATABASE IF EXISTS {quoted}")
    logger.info(f"Dropped database {database_name}")
