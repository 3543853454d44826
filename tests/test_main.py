"""Tests for application wiring: readiness checks and the app factory."""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.config import Settings
from app.main import check_database, check_mongo, create_app


def _mongo_client(ping: AsyncMock) -> MagicMock:
    client = MagicMock()
    client.admin.command = ping
    return client


class TestReadinessChecks:

    @pytest.mark.asyncio
    async def test_database_reachable(self, session_factory):
        assert await check_database(session_factory, timeout=5) is None

    @pytest.mark.asyncio
    async def test_database_error_reported(self):
        def broken_factory():
            raise ConnectionRefusedError("connection refused")

        assert await check_database(broken_factory, timeout=5) == "connection refused"

    @pytest.mark.asyncio
    async def test_mongo_reachable(self):
        ping = AsyncMock(return_value={"ok": 1.0})
        assert await check_mongo(_mongo_client(ping), timeout=5) is None
        ping.assert_awaited_once_with("ping")

    @pytest.mark.asyncio
    async def test_mongo_not_connected(self):
        assert await check_mongo(None, timeout=5) == "client not initialised"

    @pytest.mark.asyncio
    async def test_mongo_timeout_reported(self):
        async def hang(_):
            await asyncio.sleep(10)

        result = await check_mongo(_mongo_client(AsyncMock(side_effect=hang)), timeout=0.01)
        assert result == "TimeoutError"


class TestCreateApp:

    def test_docs_hidden_in_production(self):
        application = create_app(Settings(
            _env_file=None,
            DATABASE_URL="sqlite+aiosqlite:///:memory:",
            ENVIRONMENT="production",
            JWT_SECRET="s3cret",
        ))
        assert application.docs_url is None
        assert application.redoc_url is None

    def test_avatar_mount_uses_configured_prefix(self):
        application = create_app(Settings(
            _env_file=None,
            DATABASE_URL="sqlite+aiosqlite:///:memory:",
            AVATAR_URL_PREFIX="media",
        ))
        paths = {getattr(route, "path", None) for route in application.routes}
        assert "/media" in paths
        assert "/api/v1/matches" in paths
        assert application.docs_url == "/docs"
