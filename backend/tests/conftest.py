"""
Pytest configuration and fixtures for LocalPing tests.

Provides:
- A file-backed async SQLite database per test (tables created fresh)
- FastAPI app with the Database dependency overridden
- AsyncClient for testing async endpoints
- Helpers for seeding targets and raw probe results
"""

from datetime import datetime
from typing import Iterable, Optional, Tuple

import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from database import Database, get_database
from main import app
from models import ProbeResult
from repositories import SettingsRepository, TargetRepository

# Fixed reference time for retention windows
NOW = datetime(2026, 6, 15, 12, 0, 0)


@pytest_asyncio.fixture
async def db(tmp_path):
    """
    Fresh database for one test.

    A file database rather than :memory: so that concurrent sessions in a
    test see the same data.
    """
    database = Database(f"sqlite:///{tmp_path / 'localping-test.db'}")
    await database.create_all()
    yield database
    await database.dispose()


@pytest_asyncio.fixture
async def async_client(db: Database):
    """
    Create an AsyncClient pointing to the FastAPI app backed by the test
    database.

    Yields:
        httpx.AsyncClient: Async HTTP client for making requests to the app.
    """
    app.dependency_overrides[get_database] = lambda: db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    # Cleanup
    app.dependency_overrides.clear()


async def add_target(db: Database, name: str = "router", enabled: bool = True) -> int:
    """Create a target and return its id."""
    async with db.session() as session:
        async with session.begin():
            target = await TargetRepository(session).add(
                name=name, host=f"{name}.lan", enabled=enabled
            )
            return target.id


async def set_retention_days(db: Database, days: int) -> None:
    async with db.session() as session:
        async with session.begin():
            await SettingsRepository(session).set_retention_days(days)


async def seed_results(
    db: Database,
    target_id: int,
    rows: Iterable[Tuple[datetime, bool, Optional[int]]],
) -> None:
    """Insert raw probe results (timestamp, success, response_time_ms) without rollups."""
    async with db.session() as session:
        async with session.begin():
            session.add_all([
                ProbeResult(
                    target_id=target_id,
                    timestamp=timestamp,
                    success=success,
                    response_time_ms=response_time_ms,
                    protocol="ICMP",
                )
                for timestamp, success, response_time_ms in rows
            ])
