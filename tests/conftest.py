# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests
- Integration tests
"""

import asyncio
import os
from collections.abc import Generator
from typing import Any

import pytest

from learndown.core.config.settings import clear_settings_cache
from learndown.domains.tracking.registry import reset_session_registry
from learndown.infrastructure.database.mongo import MongoStoreError


# =============================================================================
# Environment Fixtures
# =============================================================================

_ENV_PREFIXES = ("MONGO_", "LEARNDOWN_")
_ENV_NAMES = ("SHINY_PORT", "SHINYPROXY_USERNAME")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Run every test without learndown variables from the outer environment.

    LEARNDOWN_TEST_* variables are kept, they configure the integration
    tests themselves.
    """
    for name in list(os.environ):
        if name.startswith("LEARNDOWN_TEST_"):
            continue
        if name.startswith(_ENV_PREFIXES) or name in _ENV_NAMES:
            monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    reset_session_registry()
    yield
    clear_settings_cache()
    reset_session_registry()


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (requires services)"
    )


# =============================================================================
# MongoDB Fake
# =============================================================================


class FakeMongo:
    """In-memory stand-in for MongoStore, used as a store_factory.

    Attributes:
        inserted: (url, database, collection, documents) per insert.
        pings: (url, database) per ping.
        reachable: URLs answering pings, or None for all of them.
        insert_error: Exception raised by every insert, if set.
        delay: Seconds each connection and insert yields to the event loop.
    """

    def __init__(self) -> None:
        self.inserted: list[tuple[str, str, str, list[dict[str, Any]]]] = []
        self.pings: list[tuple[str, str]] = []
        self.reachable: set[str] | None = None
        self.insert_error: Exception | None = None
        self.delay: float = 0

    def __call__(
        self,
        url: str,
        database: str,
        *,
        server_selection_timeout_ms: int = 5000,
    ) -> "FakeStore":
        return FakeStore(self, url, database)

    @property
    def documents(self) -> list[dict[str, Any]]:
        """Every inserted document, in insertion order."""
        return [doc for _, _, _, docs in self.inserted for doc in docs]


class FakeStore:
    """A store opened on FakeMongo."""

    def __init__(self, backend: FakeMongo, url: str, database: str) -> None:
        self.backend = backend
        self.url = url
        self.database = database

    async def __aenter__(self) -> "FakeStore":
        await asyncio.sleep(self.backend.delay)
        if not self.url:
            raise MongoStoreError("No MongoDB URL configured")
        if not self.database:
            raise MongoStoreError("No MongoDB database configured")
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        return None

    async def ping(self) -> None:
        self.backend.pings.append((self.url, self.database))
        reachable = self.backend.reachable
        if reachable is not None and self.url not in reachable:
            raise MongoStoreError(f"MongoDB database '{self.database}' not responding")

    async def insert_many(self, collection: str, documents: list[dict[str, Any]]) -> int:
        await asyncio.sleep(self.backend.delay)
        if self.backend.insert_error is not None:
            raise self.backend.insert_error
        self.backend.inserted.append((self.url, self.database, collection, list(documents)))
        return len(documents)


@pytest.fixture
def fake_mongo() -> FakeMongo:
    """Provide an in-memory MongoDB fake, reachable at every URL."""
    return FakeMongo()
