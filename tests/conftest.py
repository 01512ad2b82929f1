"""
Pytest configuration and shared fixtures.

``configure_logging`` detaches the ``firemock`` logger from the root logger,
which would hide records from ``caplog``; the autouse fixture restores it
after every test. Each test also runs under its own logging scope.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest

from firemock.client import MockFirestore
from firemock.logging import bind_scope

SAMPLE = {
    "a": {"x": 1, "name": "alpha", "tags": ["red", "blue"]},
    "b": {"x": 2, "name": "bravo", "tags": ["green"]},
    "c": {"x": 1, "name": "charlie", "tags": []},
}


@pytest.fixture(autouse=True)
def _restore_firemock_logger() -> Iterator[None]:
    logger = logging.getLogger("firemock")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture(autouse=True)
def _scope_per_test(request: pytest.FixtureRequest) -> str:
    return bind_scope(request.node.name)


@pytest.fixture()
def db() -> MockFirestore:
    """A database with one ``items`` collection holding :data:`SAMPLE`."""
    return MockFirestore({"items": SAMPLE})


@pytest.fixture()
def items(db: MockFirestore):
    return db.collection("items")
