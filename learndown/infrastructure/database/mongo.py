# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""MongoDB store for telemetry events.

This module provides a small async wrapper around the PyMongo async
client. A store is opened for a single operation (a connectivity probe or
one bulk insert) and closed right after, rather than held open for the
lifetime of a session.

Example:
    from learndown.infrastructure.database import MongoStore

    async with MongoStore(url, "sdd") as store:
        await store.ping()
        await store.insert_many("shiny", documents)
"""

import logging
from collections.abc import Sequence
from types import TracebackType
from typing import Any, Callable, Optional

from bson.errors import BSONError
from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


class MongoStoreError(Exception):
    """Exception raised for MongoDB operation failures.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying driver error.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        """Initialize the MongoDB error.

        Args:
            message: Human-readable error description.
            original_error: The underlying exception that caused this error.
        """
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class MongoStore:
    """Async MongoDB store bound to one database.

    Attributes:
        url: Connection URL.
        database: Database name.

    Example:
        store = MongoStore("mongodb://localhost:27017", "sdd")
        await store.connect()
        await store.insert_many("shiny", [{"event": "start"}])
        await store.close()
    """

    def __init__(
        self,
        url: str,
        database: str,
        *,
        server_selection_timeout_ms: int = 5000,
        client_factory: Callable[..., Any] = AsyncMongoClient,
    ) -> None:
        """Initialize the store.

        Args:
            url: MongoDB connection URL.
            database: Database name.
            server_selection_timeout_ms: Driver server selection timeout.
            client_factory: Callable building the driver client.
        """
        self.url = url
        self.database = database
        self._timeout_ms = server_selection_timeout_ms
        self._client_factory = client_factory
        self._client: Any = None

    async def connect(self) -> None:
        """Create the driver client.

        Raises:
            MongoStoreError: If the URL or database is missing or invalid.
        """
        if not self.url:
            raise MongoStoreError("No MongoDB URL configured")
        if not self.database:
            raise MongoStoreError("No MongoDB database configured")

        try:
            self._client = self._client_factory(
                self.url,
                serverSelectionTimeoutMS=self._timeout_ms,
                tz_aware=True,
            )
        except (PyMongoError, ValueError, TypeError) as e:
            raise MongoStoreError("Failed to create MongoDB client", e) from e

    async def close(self) -> None:
        """Close the driver client."""
        if self._client is not None:
            client, self._client = self._client, None
            await client.close()

    async def __aenter__(self) -> "MongoStore":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    def _ensure_connected(self) -> Any:
        """Ensure the client exists.

        Returns:
            The driver client.

        Raises:
            MongoStoreError: If not connected.
        """
        if self._client is None:
            raise MongoStoreError("MongoDB store not connected. Call connect() first.")
        return self._client

    async def ping(self) -> None:
        """Check that the server answers.

        Raises:
            MongoStoreError: If the server cannot be reached.
        """
        client = self._ensure_connected()
        try:
            await client[self.database].command("ping")
        except PyMongoError as e:
            raise MongoStoreError(f"MongoDB database '{self.database}' not responding", e) from e

    async def insert_many(
        self,
        collection: str,
        documents: Sequence[dict[str, Any]],
    ) -> int:
        """Insert documents, in order, into a collection.

        Args:
            collection: Collection name.
            documents: Documents to insert.

        Returns:
            Number of inserted documents.

        Raises:
            MongoStoreError: If the insert fails.
        """
        client = self._ensure_connected()
        if not documents:
            return 0
        try:
            result = await client[self.database][collection].insert_many(
                list(documents), ordered=True
            )
        except (PyMongoError, BSONError) as e:
            raise MongoStoreError(
                f"Failed to insert into {self.database}.{collection}", e
            ) from e

        logger.debug(
            "Inserted %d documents into %s.%s",
            len(result.inserted_ids),
            self.database,
            collection,
        )
        return len(result.inserted_ids)


async def check_connection(
    url: str,
    database: str,
    timeout_ms: int = 5000,
    store_factory: Callable[..., MongoStore] | None = None,
) -> bool:
    """Lightweight probe: can a client reach the database?

    Args:
        url: MongoDB connection URL.
        database: Database name.
        timeout_ms: Server selection timeout.
        store_factory: Store class or factory, MongoStore by default.

    Returns:
        True if the database answered a ping, False otherwise.
    """
    factory = store_factory or MongoStore
    try:
        async with factory(url, database, server_selection_timeout_ms=timeout_ms) as store:
            await store.ping()
        return True
    except MongoStoreError as e:
        logger.debug("MongoDB probe failed for database %s: %s", database, e)
        return False
