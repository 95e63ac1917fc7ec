"""
Shared fixtures: an in-memory SQLite database through aiosqlite.

StaticPool keeps a single connection so every session in a test sees the
same in-memory database.
"""
import os

# Settings require DATABASE_URL at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from parrainage.database import custom_json_dumps
from parrainage.services.pricing_migration import ParrainPricingMigration
from parrainage.services.pricing_calculator import ParrainPricingCalculator


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        json_serializer=custom_json_dumps,
    )
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def migrated_db(db):
    """Session on a database with the pricing tables at the current version."""
    await ParrainPricingMigration(db).migrate()
    return db


@pytest.fixture
def calculator():
    return ParrainPricingCalculator()
