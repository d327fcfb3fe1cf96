"""Shared test fixtures.

Service tests run against an in-memory SQLite database through aiosqlite.
PostgreSQL row locks are not exercised here; the conditional updates and
unique constraints behave the same on both.
"""

import os

# Settings are read at import time by the Celery app
os.environ.setdefault("POSTGRES_HOST", "localhost")
os.environ.setdefault("POSTGRES_USER", "testuser")
os.environ.setdefault("POSTGRES_PASSWORD", "testpass")
os.environ.setdefault("POSTGRES_DB", "testdb")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest_asyncio

from tests.factories import create_schema, create_test_engine


@pytest_asyncio.fixture
async def session_maker():
    engine = create_test_engine()
    maker = await create_schema(engine)
    yield maker
    await engine.dispose()


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session
