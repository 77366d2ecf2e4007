"""Integration-test fixtures.

Pre-condition: PostgreSQL reachable at DATABASE_URL and `alembic upgrade head` applied.

All integration tests share a single event loop so the asyncpg pool stays
valid for the whole session. When PostgreSQL is unreachable every test that
uses the fixtures is skipped.
"""

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from config.settings import settings


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def engine() -> AsyncIterator[AsyncEngine]:
    eng = create_async_engine(settings.DATABASE_URL, pool_size=10)
    try:
        async with eng.connect() as conn:
            await conn.execute(text("SELECT 1 FROM creator_balances LIMIT 1"))
    except (OSError, SQLAlchemyError) as e:
        await eng.dispose()
        pytest.skip(f"PostgreSQL not available or not migrated: {e}")
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
