"""Integration test conftest - fixtures requiring live services.

Requires:
    - PostgreSQL: RBAC_TEST_DATABASE_URL (postgresql+asyncpg://...)
    - Redis: RBAC_TEST_REDIS_URL (use a dedicated DB, it is flushed)

Fixtures skip when the corresponding variable is unset.

Usage:
    pytest tests/integration/ -m integration
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
import sqlalchemy as sa

from src.infra.cache.redis import RedisStorageAdapter
from src.infra.db import create_db_engine, create_session_factory
from src.infra.models import Base

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


@pytest.fixture
async def live_session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory on a freshly created schema."""
    url = os.environ.get("RBAC_TEST_DATABASE_URL", "")
    if not url:
        pytest.skip("RBAC_TEST_DATABASE_URL not set")

    engine = create_db_engine(url, pool_size=5, max_overflow=5)
    async with engine.begin() as conn:
        await conn.execute(sa.text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield create_session_factory(engine)
    finally:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


@pytest.fixture
async def live_storage() -> AsyncGenerator[RedisStorageAdapter, None]:
    """RedisStorageAdapter on a flushed test database."""
    url = os.environ.get("RBAC_TEST_REDIS_URL", "")
    if not url:
        pytest.skip("RBAC_TEST_REDIS_URL not set")

    adapter = RedisStorageAdapter(redis_url=url)
    client = await adapter._get_client()
    await client.flushdb()
    try:
        yield adapter
    finally:
        await client.flushdb()
        await adapter.close()
