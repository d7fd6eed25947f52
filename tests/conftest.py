"""Shared fixtures for sqliteplus tests."""

import pytest

from sqliteplus.engine import ExecutionEngine


@pytest.fixture
def db_path(tmp_path):
    """Path to a not-yet-created database file."""
    return str(tmp_path / "test.db")


@pytest.fixture
def engine(db_path):
    """Engine opened on a fresh file database; closed after the test."""
    engine = ExecutionEngine(db_path)
    yield engine
    engine.close()


@pytest.fixture
def memory_engine():
    """Engine on an in-memory database."""
    engine = ExecutionEngine(":memory:")
    yield engine
    engine.close()
