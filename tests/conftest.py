"""Pytest configuration and fixtures for PneumaFlow tests."""

from pathlib import Path

import pytest

from pneumaflow.config import Settings
from pneumaflow.database import AggregateRepository, Database
from pneumaflow.storage import ColumnarStore


def pytest_configure(config):
    """Register custom test markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that do not require external dependencies"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests combining multiple components"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take significant time (>5 seconds)"
    )


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the config file at a per-test location."""
    config_path = tmp_path / "home" / "config.toml"
    monkeypatch.setattr("pneumaflow.config.get_config_path", lambda: config_path)
    monkeypatch.setattr("pneumaflow.cli.get_config_path", lambda: config_path)
    return config_path


# =============================================================================
# Storage Fixtures
# =============================================================================


@pytest.fixture
def data_dir(tmp_path) -> Path:
    """Root directory for columnar sessions."""
    return tmp_path / "parquet"


@pytest.fixture
def temp_db(tmp_path) -> Path:
    """Path for a throwaway SQLite database."""
    return tmp_path / "test_pneumaflow.db"


@pytest.fixture
def settings(data_dir, temp_db) -> Settings:
    return Settings(data_dir=data_dir, database_path=str(temp_db))


@pytest.fixture
def store(data_dir) -> ColumnarStore:
    return ColumnarStore(data_dir)


@pytest.fixture
def database(temp_db):
    """Open database, closed after the test."""
    with Database(str(temp_db)) as db:
        yield db


@pytest.fixture
def repository(database) -> AggregateRepository:
    return AggregateRepository(database)
