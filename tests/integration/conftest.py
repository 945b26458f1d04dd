"""Integration fixtures: kv_entries on a real Postgres via testcontainers.

Requires Docker to be running.
Run with: pytest tests/integration -v
"""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from health.domain.orm import Base


@pytest.fixture(scope="session")
def postgres():
    from testcontainers.postgres import PostgresContainer

    with PostgresContainer("postgres:16-alpine") as pg:
        yield pg


@pytest.fixture(scope="session")
def database_url(postgres) -> str:
    # testcontainers reports a psycopg2 URL; the store runs on asyncpg
    return postgres.get_connection_url().replace("psycopg2", "asyncpg")


@pytest.fixture
async def engine(database_url):
    """Fresh kv_entries table per test."""
    engine = create_async_engine(database_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)
