"""Tests for relational engine construction."""
import pytest

import google.cloud.sql.connector as cloud_sql_connector
from app.config import Settings
from app.database import (
    SERVER_POOL,
    build_engine,
    cloud_sql_creator,
    engine_options,
    normalise_database_url,
)


def _settings(**overrides) -> Settings:
    overrides.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    return Settings(_env_file=None, **overrides)


class FakeConnector:
    instances: list["FakeConnector"] = []

    def __init__(self, loop=None):
        self.loop = loop
        self.calls = []
        FakeConnector.instances.append(self)

    async def connect_async(self, instance, driver, **kwargs):
        self.calls.append((instance, driver, kwargs))
        return object()


@pytest.fixture
def fake_connector(monkeypatch):
    FakeConnector.instances = []
    monkeypatch.setattr(cloud_sql_connector, "Connector", FakeConnector)
    return FakeConnector


class TestUrls:

    @pytest.mark.parametrize("raw, expected", [
        ("postgresql://u:p@db:5432/tandem", "postgresql+asyncpg://u:p@db:5432/tandem"),
        ("postgres://u:p@db/tandem", "postgresql+asyncpg://u:p@db/tandem"),
        ("postgresql+asyncpg://u@db/tandem", "postgresql+asyncpg://u@db/tandem"),
        ("sqlite+aiosqlite:///./tandem.db", "sqlite+aiosqlite:///./tandem.db"),
    ])
    def test_normalise(self, raw, expected):
        assert normalise_database_url(raw) == expected

    def test_pool_tuning_only_for_servers(self):
        assert engine_options("sqlite+aiosqlite:///x.db") == {}
        assert engine_options("postgresql+asyncpg://db/tandem") == SERVER_POOL


class TestBuildEngine:

    def test_plain_postgres_url(self):
        engine = build_engine(_settings(DATABASE_URL="postgresql://u:p@db/tandem"))
        assert engine.url.drivername == "postgresql+asyncpg"
        assert engine.pool.size() == SERVER_POOL["pool_size"]

    def test_sqlite_url(self):
        engine = build_engine(_settings())
        assert engine.url.drivername == "sqlite+aiosqlite"

    def test_cloud_sql_route(self, fake_connector):
        settings = _settings(
            CLOUD_SQL_USE_UNIX_SOCKET=True,
            CLOUD_SQL_INSTANCE_CONNECTION="proj:region:inst",
        )
        engine = build_engine(settings)
        assert engine.url.drivername == "postgresql+asyncpg"
        assert engine.url.host is None
        # No connection is opened until the pool asks for one.
        assert fake_connector.instances == []

    def test_socket_flag_without_instance_uses_database_url(self, fake_connector):
        engine = build_engine(_settings(CLOUD_SQL_USE_UNIX_SOCKET=True))
        assert engine.url.drivername == "sqlite+aiosqlite"


class TestCloudSqlCreator:

    @pytest.mark.asyncio
    async def test_connects_with_iam_and_reuses_connector(self, fake_connector):
        settings = _settings(
            CLOUD_SQL_INSTANCE_CONNECTION="proj:region:inst",
            DB_USER="svc@proj.iam",
            DB_NAME="tandem",
        )
        connect = cloud_sql_creator(settings)
        await connect()
        await connect()

        [connector] = fake_connector.instances
        assert connector.loop is not None
        assert len(connector.calls) == 2
        instance, driver, kwargs = connector.calls[0]
        assert (instance, driver) == ("proj:region:inst", "asyncpg")
        assert kwargs["enable_iam_auth"] is True
        assert kwargs["user"] == "svc@proj.iam"
        assert kwargs["db"] == "tandem"
