"""Test configuration and fixtures for modelql."""

import asyncio
import os
import sys
from typing import AsyncGenerator

import pytest
from dotenv import load_dotenv
from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from modelql.config import reset_settings

# Try to load environment variables from .env file
load_dotenv()


@pytest.fixture(scope="session", autouse=True)
def event_loop_policy():
    """Set event loop policy for Windows compatibility."""
    if sys.platform.startswith("win"):
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    yield


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Every test starts from default settings, ignoring MODELQL_* variables from the shell or .env."""
    for key in list(os.environ):
        if key.startswith("MODELQL_") and key != "MODELQL_TEST_DATABASE_URL":
            monkeypatch.delenv(key, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture(scope="function")
def metadata() -> MetaData:
    return MetaData()


@pytest.fixture(scope="function")
async def engine():
    """Create a test database engine for each test function.

    Uses MODELQL_TEST_DATABASE_URL when set, in-memory SQLite otherwise.
    Tables are created by the tests themselves from their own MetaData.
    """
    test_db_url = os.getenv("MODELQL_TEST_DATABASE_URL")
    if test_db_url:
        engine = create_async_engine(test_db_url, echo=False, future=True, pool_pre_ping=True)
    else:
        engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False, future=True)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
async def session_factory(engine) -> AsyncGenerator["async_sessionmaker[AsyncSession]", None]:
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
