# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the MongoDB store and transfer pipeline.

These tests require a running MongoDB instance.
Run with: LEARNDOWN_TEST_MONGO_URL=mongodb://localhost:27017 pytest tests/integration -v

Prerequisites:
    - MongoDB reachable at LEARNDOWN_TEST_MONGO_URL
"""

import os
import uuid
from pathlib import Path

import pytest
from pymongo import AsyncMongoClient

from learndown.domains.tracking.recorder import SessionRecorder
from learndown.domains.tracking.transfer import LogTransferPipeline
from learndown.infrastructure.database.mongo import MongoStore, check_connection

MONGO_URL = os.environ.get("LEARNDOWN_TEST_MONGO_URL", "")

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not MONGO_URL, reason="LEARNDOWN_TEST_MONGO_URL is not set"),
]


@pytest.fixture
async def database() -> str:
    """Provide a throwaway database name, dropped after the test."""
    name = f"learndown_test_{uuid.uuid4().hex[:8]}"
    yield name
    client = AsyncMongoClient(MONGO_URL)
    try:
        await client.drop_database(name)
    finally:
        await client.close()


class TestMongoStore:
    """Tests against a live server."""

    async def test_ping(self, database: str) -> None:
        """Test that the server answers a ping."""
        async with MongoStore(MONGO_URL, database) as store:
            await store.ping()

    async def test_check_connection(self, database: str) -> None:
        """Test the connectivity probe on a live and a dead URL."""
        assert await check_connection(MONGO_URL, database)
        assert not await check_connection("mongodb://127.0.0.1:1", database, timeout_ms=200)

    async def test_insert_many(self, database: str) -> None:
        """Test that documents are inserted."""
        async with MongoStore(MONGO_URL, database) as store:
            count = await store.insert_many("shiny", [{"event": "start"}, {"event": "stop"}])

        assert count == 2


class TestTransferPipeline:
    """End-to-end transfer of a recorded session."""

    async def test_transfer_session(self, tmp_path: Path, database: str) -> None:
        """Test that a recorded session lands in the collection."""
        recorder = SessionRecorder(tmp_path, app="app01", session_id="token-1",
                                   user='{"login":"jdoe","user":"John"}')
        recorder.record_input("slider", 5)
        path = recorder.close()

        pipeline = LogTransferPipeline(MONGO_URL, database, collection="shiny")
        assert await pipeline.transfer_one(path)

        client = AsyncMongoClient(MONGO_URL, tz_aware=True)
        try:
            documents = await client[database]["shiny"].find({}, {"_id": 0}).to_list()
        finally:
            await client.close()

        assert not path.exists()
        assert sorted(doc["event"] for doc in documents) == ["inputs", "result", "start", "stop"]
        assert all(doc["login"] == "jdoe" for doc in documents)
