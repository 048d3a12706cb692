# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Transfer session log artifacts to MongoDB.

Each artifact is normalized and inserted with a single bulk insert on a
freshly opened store. The artifact is deleted only once the insert has
returned without error; otherwise it stays in place for a later run, so
events are neither lost nor inserted twice.

Usage:
    from learndown.domains.tracking.transfer import LogTransferPipeline

    pipeline = LogTransferPipeline(url, "sdd", version="1.0.0", drop_dir=True)
    await pipeline.transfer_all(Path("shiny_logs"))
"""

import asyncio
import logging
import weakref
from pathlib import Path
from typing import Callable

from learndown.domains.tracking.normalizer import ARTIFACT_SUFFIX, ParseError, read_shinylogs
from learndown.infrastructure.database.mongo import MongoStore, MongoStoreError

logger = logging.getLogger(__name__)

# Per event loop, one lock per buffer directory
_directory_locks: weakref.WeakKeyDictionary = weakref.WeakKeyDictionary()


def directory_lock(directory: Path | str) -> asyncio.Lock:
    """Lock serializing the transfers of one buffer directory.

    Sessions sharing a buffer directory end concurrently; holding this lock
    while an artifact is read, inserted and deleted keeps two transfers
    from inserting the same artifact.
    """
    locks = _directory_locks.setdefault(asyncio.get_running_loop(), {})
    key = Path(directory).resolve()
    lock = locks.get(key)
    if lock is None:
        lock = locks[key] = asyncio.Lock()
    return lock


def list_artifacts(directory: Path | str) -> list[Path]:
    """Pending artifacts of a directory, oldest name first."""
    directory = Path(directory)
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.glob(f"*{ARTIFACT_SUFFIX}") if p.is_file())


class LogTransferPipeline:
    """Move session log artifacts from a local directory to MongoDB.

    Attributes:
        url: MongoDB URL.
        database: Database name.
        collection: Collection receiving the events.
        version: Application version stored with the events.
        log_errors: Transfer error events.
        log_outputs: Transfer output events.
        drop_dir: Remove the directory once drained.
    """

    def __init__(
        self,
        url: str,
        database: str,
        collection: str = "shiny",
        version: str = "0",
        log_errors: bool = True,
        log_outputs: bool = False,
        drop_dir: bool = False,
        server_selection_timeout_ms: int = 5000,
        store_factory: Callable[..., MongoStore] = MongoStore,
    ) -> None:
        self.url = url
        self.database = database
        self.collection = collection
        self.version = version
        self.log_errors = log_errors
        self.log_outputs = log_outputs
        self.drop_dir = drop_dir
        self._timeout_ms = server_selection_timeout_ms
        self._store_factory = store_factory

    async def transfer_one(self, path: Path | str) -> bool:
        """Transfer one artifact.

        Args:
            path: Artifact path.

        Returns:
            True if the events were inserted and the artifact deleted,
            False if the artifact is missing or the transfer failed.
        """
        path = Path(path)
        async with directory_lock(path.parent):
            return await self._transfer(path)

    async def transfer_all(self, directory: Path | str) -> bool:
        """Transfer every pending artifact of a directory.

        Failures on one artifact do not stop the others. Artifacts are
        listed under the directory lock, so a concurrent drain of the same
        directory finds only what this one left behind.

        Args:
            directory: Buffer directory.

        Returns:
            True if there were artifacts to transfer, False otherwise.
        """
        directory = Path(directory)
        async with directory_lock(directory):
            artifacts = list_artifacts(directory)
            if not artifacts:
                logger.debug("No log file found in %s", directory)
                return False

            logger.debug("Log file(s) found in %s: %d", directory, len(artifacts))
            transferred = 0
            for artifact in artifacts:
                if await self._transfer(artifact):
                    transferred += 1
            logger.info(
                "Transferred %d of %d log file(s) from %s",
                transferred,
                len(artifacts),
                directory,
            )

            if self.drop_dir:
                try:
                    directory.rmdir()
                except OSError:
                    logger.debug(
                        "Log directory %s kept, remaining log files: %d",
                        directory,
                        len(list_artifacts(directory)),
                    )
            return True

    async def _transfer(self, path: Path) -> bool:
        # Caller holds the directory lock.
        if not path.exists():
            return False

        try:
            records = read_shinylogs(
                path,
                version=self.version,
                log_errors=self.log_errors,
                log_outputs=self.log_outputs,
            )
            logger.debug("%d events found in %s", len(records), path)

            async with self._store_factory(
                self.url,
                self.database,
                server_selection_timeout_ms=self._timeout_ms,
            ) as store:
                await store.insert_many(
                    self.collection,
                    [record.to_document() for record in records],
                )
        except (ParseError, MongoStoreError) as e:
            logger.warning("Error while transferring log file %s: %s", path, e)
            return False

        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            # Inserted but not deleted: a later run would insert it again.
            logger.error("Transferred log file %s could not be deleted: %s", path, e)
        logger.debug("Successful transfer of data from %s to the MongoDB database", path)
        return True


async def record_session_log(
    path: Path | str,
    url: str,
    database: str,
    collection: str = "shiny",
    version: str = "0",
    log_errors: bool = True,
    log_outputs: bool = False,
    **kwargs,
) -> bool:
    """Transfer a single artifact (see LogTransferPipeline.transfer_one)."""
    pipeline = LogTransferPipeline(
        url,
        database,
        collection=collection,
        version=version,
        log_errors=log_errors,
        log_outputs=log_outputs,
        **kwargs,
    )
    return await pipeline.transfer_one(path)


async def record_shiny(
    directory: Path | str,
    url: str,
    database: str,
    collection: str = "shiny",
    version: str = "0",
    log_errors: bool = True,
    log_outputs: bool = False,
    drop_dir: bool = False,
    **kwargs,
) -> bool:
    """Transfer all artifacts of a directory (see LogTransferPipeline.transfer_all)."""
    pipeline = LogTransferPipeline(
        url,
        database,
        collection=collection,
        version=version,
        log_errors=log_errors,
        log_outputs=log_outputs,
        drop_dir=drop_dir,
        **kwargs,
    )
    return await pipeline.transfer_all(directory)
