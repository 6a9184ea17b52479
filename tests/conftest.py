"""
Pytest configuration for SQLite Flight SQL tests

Every fixture runs against a fresh in-memory SQLite database seeded with the
example tables:

    foreignTable(id, foreignName, value)      3 rows
    intTable(id, keyName, value, foreignId)   3 rows, foreignId -> foreignTable(id)
"""

from typing import Generator

import pytest

from sqlite_flightsql.dispatcher import CommandDispatcher
from sqlite_flightsql.engine import SQLiteEngine
from sqlite_flightsql.registry import StatementHandleRegistry


@pytest.fixture
def engine() -> Generator[SQLiteEngine, None, None]:
    """Seeded in-memory engine, closed after the test"""
    engine = SQLiteEngine(":memory:")
    engine.seed_example_data()
    yield engine
    engine.close()


@pytest.fixture
def registry(engine) -> StatementHandleRegistry:
    return StatementHandleRegistry(engine)


@pytest.fixture
def dispatcher(engine, registry) -> CommandDispatcher:
    return CommandDispatcher(engine, registry=registry, batch_size=2)
