"""
Shared fixtures for the Newsletter API tests.

Database tests create a throwaway database per test, migrate it and drop it
afterwards. They are skipped when PostgreSQL is not reachable with the
configured credentials (override with DATABASE__HOST, DATABASE__PASSWORD...).

Set TEST_LOG=1 to see debug logs while the tests run.
"""

import asyncio
import os
import uuid
from typing import List

import asyncpg
import pytest
from fastapi.testclient import TestClient

from newsletter_api.config import Settings, get_settings
from newsletter_api.database.connection import connect
from newsletter_api.database.migrations import create_database, drop_database, run_migrations
from newsletter_api.main import create_app
from newsletter_api.services.email_service import EmailClient
from newsletter_api.telemetry import configure_logging

if os.getenv("TEST_LOG"):
    configure_logging("DEBUG")


class RecordingEmailClient(EmailClient):
    """Keeps every message instead of delivering it"""

    def __init__(self, fail: bool = False):
        super().__init__(sender="newsletter@example.com")
        self.fail = fail
        self.sent: List[dict] = []

    async def send_email(self, recipient, subject, html_content, text_content):
        if self.fail:
            raise RuntimeError("email provider unavailable")
        message = {
            "recipient": recipient,
            "subject": subject,
            "html_content": html_content,
            "text_content": text_content,
        }
        self.sent.append(message)
        return {"success": True, "to_email": recipient}


def postgres_available(settings: Settings) -> bool:
    async def probe():
        conn = await connect(settings.database, with_db=False)
        await conn.close()

    try:
        asyncio.run(probe())
        return True
    except (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError):
        return False


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def email_client():
    return RecordingEmailClient()


@pytest.fixture
def test_database(settings):
    """Settings pointing at a freshly created and migrated database"""
    if not postgres_available(settings):
        pytest.skip("PostgreSQL is not reachable")

    database = settings.database.model_copy(update={"database_name": str(uuid.uuid4())})
    test_settings = settings.model_copy(update={"database": database})

    async def setup():
        server = await connect(database, with_db=False)
        try:
            await create_database(server, database.database_name)
        finally:
            await server.close()

        conn = await connect(database)
        try:
            await run_migrations(conn)
        finally:
            await conn.close()

    async def teardown():
        server = await connect(database, with_db=False)
        try:
            await drop_database(server, database.database_name)
        finally:
            await server.close()

    asyncio.run(setup())
    yield test_settings
    asyncio.run(teardown())


@pytest.fixture
def run_db(test_database):
    """Run a coroutine function against a single connection to the test database"""

    def run(fn):
        async def wrapper():
            conn = await connect(test_database.database)
            try:
                return await fn(conn)
            finally:
                await conn.close()

        return asyncio.run(wrapper())

    return run


@pytest.fixture
def client(test_database, email_client):
    app = create_app(test_database, email_client=email_client)
    with TestClient(app) as client:
        yield client
