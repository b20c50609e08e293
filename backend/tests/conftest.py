"""
Shared pytest configuration for backend tests.

Runs against TEST_DATABASE_URL when it is set (e.g. a PostgreSQL test
database); otherwise every test gets a fresh in-memory SQLite database.

SAFETY: a PostgreSQL URL whose database name does not contain "test" is
refused, so a misconfigured environment can never drop real tables.
"""

import os

# Disable rate limiting before the API package is imported
os.environ.setdefault("ENV", "test")

import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker  # noqa: E402
from sqlalchemy.pool import NullPool, StaticPool  # noqa: E402
from backend.database.db import Base  # noqa: E402


def _resolve_test_database_url() -> str:
    """Build the test database URL with safety checks."""
    url = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite://")
    if url.startswith("sqlite"):
        return url

    db_name = url.rsplit("/", 1)[-1].split("?")[0]  # strip query params
    if "test" not in db_name.lower():
        raise RuntimeError(
            f"SAFETY: Refusing to run tests against database '{db_name}'. "
            f"Set TEST_DATABASE_URL to a database whose name contains 'test'."
        )
    return url


TEST_DATABASE_URL = _resolve_test_database_url()


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine with all tables."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        # One shared connection so the in-memory database survives across sessions
        engine = create_async_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        # NullPool avoids reusing connections across event loops
        engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool, pool_pre_ping=True)

    async with engine.begin() as conn:
        from backend.database import models  # noqa: F401
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(test_engine):
    """Session factory bound to the test engine."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_maker):
    """Create a test database session."""
    async with session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


@pytest_asyncio.fixture
async def test_user_id(db_session):
    """Create a test user and return its ID."""
    from backend.services import user_service

    return await user_service.create_user(
        session=db_session,
        username="captain",
        email="captain@example.com",
        password_hash="hashed_password",
    )


@pytest_asyncio.fixture
async def other_user_id(db_session):
    """Create a second test user and return its ID."""
    from backend.services import user_service

    return await user_service.create_user(
        session=db_session,
        username="rival",
        email="rival@example.com",
        password_hash="hashed_password",
    )


def make_game_payload(**overrides):
    """A valid save-match payload: one vertical self ship, one sunk single-cell rival ship."""
    payload = {
        "name": "Friday rematch",
        "date": "2024-05-03",
        "fire_direction": "up",
        "total_hits": 3,
        "ships": {
            "self": [
                {"ship_id": 1, "cells": [{"x": 0, "y": 0, "hit": False}, {"x": 0, "y": 1, "hit": False}]},
            ],
            "rival": [
                {"ship_id": 2, "cells": [{"x": 5, "y": 5, "hit": True}]},
            ],
        },
        "boards": {
            "self": [
                {"x": 0, "y": 0, "marker": "ship"},
                {"x": 0, "y": 1, "marker": "ship"},
                {"x": 3, "y": 3, "marker": "miss"},
            ],
            "rival": [
                {"x": 5, "y": 5, "marker": "hit"},
                {"x": 9, "y": 9, "marker": "miss"},
            ],
        },
    }
    payload.update(overrides)
    return payload
