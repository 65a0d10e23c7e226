# migrate.py - create the database if needed and apply pending migrations
import argparse
import asyncio
import logging

import asyncpg

from newsletter_api.config import settings
from newsletter_api.database.connection import connect
from newsletter_api.database.migrations import create_database, run_migrations
from newsletter_api.telemetry import configure_logging

logger = logging.getLogger("migrate")


async def migrate(create: bool):
    database = settings.database

    if create:
        server = await connect(database, with_db=False)
        try:
            await create_database(server, database.database_name)
        except asyncpg.DuplicateDatabaseError:
            logger.info(f"Database {database.database_name} already exists")
        finally:
            await server.close()

    conn = await connect(database)
    try:
        await run_migrations(conn)
    finally:
        await conn.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Apply the SQL migrations in ./migrations")
    parser.add_argument(
        "--create-database",
        action="store_true",
        help="create the configured database before migrating",
    )
    args = parser.parse_args()

    configure_logging(settings.log_level)
    asyncio.run(migrate(args.create_database))
