"""
Neo4j client tests (driver mocked)
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from neo4j.exceptions import ServiceUnavailable

from sportsblock.database import client as client_module
from sportsblock.database.client import Neo4jClient


@pytest.fixture
def driver(monkeypatch):
    driver = MagicMock()
    driver.verify_connectivity = AsyncMock()
    driver.close = AsyncMock()
    monkeypatch.setattr(client_module.AsyncGraphDatabase, "driver", MagicMock(return_value=driver))
    return driver


class TestConnection:
    """Tests for connect/close."""

    @pytest.mark.asyncio
    async def test_connect(self, driver):
        db = Neo4jClient(uri="bolt://db:7687", user="neo4j", password="pw")

        await db.connect()
        await db.connect()

        assert db.is_connected
        driver.verify_connectivity.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_connect_failure_closes_driver(self, driver):
        driver.verify_connectivity.side_effect = ServiceUnavailable("down")
        db = Neo4jClient(password="pw")

        with pytest.raises(ServiceUnavailable):
            await db.connect()

        assert not db.is_connected
        driver.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close(self, driver):
        db = Neo4jClient(password="pw")
        await db.connect()

        await db.close()
        await db.close()

        assert not db.is_connected
        driver.close.assert_awaited_once()


class TestHealthCheck:
    """Tests for health_check."""

    @pytest.mark.asyncio
    async def test_not_connected_is_unhealthy(self):
        health = await Neo4jClient(password="pw", database="sportsblock").health_check()

        assert health["status"] == "unhealthy"
        assert health["database"] == "sportsblock"

    @pytest.mark.asyncio
    async def test_healthy(self, monkeypatch):
        db = Neo4jClient(password="pw")
        monkeypatch.setattr(db, "execute_single", AsyncMock(return_value={"ok": 1}))

        health = await db.health_check()

        assert health["status"] == "healthy"
        assert health["latency_ms"] >= 0
