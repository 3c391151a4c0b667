"""
Tests for the health check endpoint and service.

Covers:
- Healthy state with the database reachable
- Response structure validation
- Unhealthy state when the database is gone
"""

import pytest
from httpx import AsyncClient

from database import Database
from services.health import run_health_checks


class TestHealthEndpoint:
    """Health check endpoint tests."""

    @pytest.mark.asyncio
    async def test_health_response_structure(self, async_client: AsyncClient):
        """Health response contains all required fields."""
        response = await async_client.get("/health")
        data = response.json()
        assert "status" in data
        assert "app" in data
        assert "version" in data
        assert "uptime_seconds" in data
        assert "checks" in data
        assert "timestamp" in data
        assert isinstance(data["checks"], list)
        assert isinstance(data["uptime_seconds"], (int, float))

    @pytest.mark.asyncio
    async def test_health_includes_database_check(self, async_client: AsyncClient):
        """Health response includes a database connectivity check."""
        response = await async_client.get("/health")
        data = response.json()
        db_check = next(c for c in data["checks"] if c["name"] == "database")
        assert db_check["status"] == "ok"
        assert db_check["response_time_ms"] is not None


class TestHealthService:

    @pytest.mark.asyncio
    async def test_unreachable_database_is_unhealthy(self, tmp_path):
        """A database file that cannot be opened reports unhealthy."""
        # A directory path cannot be opened as a SQLite database
        broken = Database(f"sqlite:///{tmp_path}")
        try:
            health = await run_health_checks(broken)
        finally:
            await broken.dispose()

        assert health.status == "unhealthy"
        assert health.checks[0].status == "error"
        assert health.checks[0].message
