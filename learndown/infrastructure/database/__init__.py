# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database infrastructure for the MongoDB telemetry store.

Example:
    from learndown.infrastructure.database import MongoStore, check_connection

    if await check_connection(url, "sdd"):
        async with MongoStore(url, "sdd") as store:
            await store.insert_many("shiny", documents)
"""

from learndown.infrastructure.database.mongo import (
    MongoStore,
    MongoStoreError,
    check_connection,
)

__all__ = [
    "MongoStore",
    "MongoStoreError",
    "check_connection",
]
