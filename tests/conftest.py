"""Shared pytest fixtures: fake warehouse connections, object storage and settings."""

from __future__ import annotations

import os
from typing import List
from unittest.mock import MagicMock

import pytest

# Keep tests independent from a developer .env file
os.environ.setdefault("SL_ENV_FILE", "tests/.env.test-does-not-exist")
os.environ.setdefault("SL_WAREHOUSE__URI", "postgresql://loader:pw@localhost:5439/test")

from stage_loader.config import get_settings  # noqa: E402
from stage_loader.io.loader.models import TableManifest  # noqa: E402
from stage_loader.io.loader.observations import InMemoryObservations  # noqa: E402
from stage_loader.io.storage.credentials import CredentialSet  # noqa: E402


class FakeWarehouse:
    """Connection factory recording executed SQL and transaction calls."""

    def __init__(self) -> None:
        self.executed: List[str] = []
        self.connections: List[MagicMock] = []
        self.fail_on: str | None = None
        self.error: Exception = RuntimeError("statement failed")

    def __call__(self, connection_url: str) -> MagicMock:
        conn = MagicMock(name="connection")
        conn.closed = 0
        conn.dsn = connection_url
        cursor = conn.cursor.return_value.__enter__.return_value

        def _execute(sql: str) -> None:
            if self.fail_on and self.fail_on in sql:
                raise self.error
            self.executed.append(sql)

        cursor.execute.side_effect = _execute
        self.connections.append(conn)
        return conn

    @property
    def connection(self) -> MagicMock:
        return self.connections[-1]


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def warehouse() -> FakeWarehouse:
    return FakeWarehouse()


@pytest.fixture
def observations() -> InMemoryObservations:
    return InMemoryObservations()


@pytest.fixture
def credentials() -> CredentialSet:
    return CredentialSet(access_key_id="AKIAEXAMPLE", secret_access_key="s3cr3t")


@pytest.fixture
def store() -> MagicMock:
    blob_store = MagicMock(name="blob_store")
    blob_store.put.side_effect = lambda bucket, key, body: f"s3://{bucket}/{key}"
    return blob_store


@pytest.fixture
def merge_manifest() -> TableManifest:
    return TableManifest(
        table="t",
        connection_url="postgresql://loader@warehouse/db",
        pk_columns=["id"],
        strategy="merge",
        columns=["id", "name"],
        options=["GZIP", "DELIMITER '\\t'"],
    )
