# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Bootstrap database configuration from an encrypted blob.

Course applications receive their MongoDB coordinates as an encrypted
configuration mapping, served from a URL and cached locally. The
bootstrapper resolves it cache first:

    START -> cache file exists? -> try cache -> success: done (cache)
                                             -> failure: try remote
          -> no cache file      -> try remote
    try remote -> success: done (remote), cache file overwritten
               -> failure: done (failed)

Each attempt decrypts the blob, merges the values into a copy of the base
MongoSettings (explicitly configured values win) and pings the database
with the merged coordinates. A failed attempt never leaks its values into
the next one, and its cause is kept in the returned BootstrapResult.

Example:
    from learndown.core.config.bootstrap import ConfigBootstrapper

    bootstrapper = ConfigBootstrapper(
        url="https://example.org/course/config",
        password="s3cret",
    )
    result = await bootstrapper.run()
    if result:
        settings = result.settings
"""

import logging
import os
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable

import httpx

from learndown.core.config.settings import MongoSettings, get_settings
from learndown.core.security.cipher import DecryptionError, EncryptedBlob, decrypt, derive_key
from learndown.infrastructure.database.mongo import MongoStore

logger = logging.getLogger(__name__)


class ConfigSource(str, Enum):
    """Where a configuration came from."""

    CACHE = "cache"
    REMOTE = "remote"
    NONE = "none"


@dataclass
class BootstrapAttempt:
    """A failed attempt to configure from one source.

    Attributes:
        source: The source that was tried.
        error: Why it failed.
    """

    source: ConfigSource
    error: Exception


@dataclass
class BootstrapResult:
    """Outcome of a bootstrap run.

    Truthy when a source was validated against the live database.

    Attributes:
        ok: Whether a configuration was validated.
        source: The source that succeeded, or NONE.
        settings: Merged MongoDB settings on success.
        values: Decrypted configuration mapping on success.
        attempts: Failed attempts, in the order they were made.
    """

    ok: bool
    source: ConfigSource
    settings: MongoSettings | None = None
    values: dict[str, str] = field(default_factory=dict)
    attempts: list[BootstrapAttempt] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.ok

    @property
    def error(self) -> Exception | None:
        """Cause of the last failed attempt, if any."""
        return self.attempts[-1].error if self.attempts else None


class ConfigBootstrapper:
    """Resolve and validate the MongoDB configuration.

    Attributes:
        url: URL (or local path) of the encrypted configuration.
        cache: Path of the local cache file.
    """

    def __init__(
        self,
        url: str,
        password: str,
        cache: Path | str = Path(".learndown_config"),
        mongo: MongoSettings | None = None,
        timeout: float = 30.0,
        store_factory: Callable[..., MongoStore] = MongoStore,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the bootstrapper.

        Args:
            url: URL (http or https) or local path serving the blob.
            password: Password of the blob.
            cache: Local cache file path.
            mongo: Base MongoDB settings; explicit values there take
                precedence over the decrypted ones.
            timeout: HTTP timeout in seconds.
            store_factory: Store class or factory used for the probe.
            transport: Optional httpx transport (used by tests).
        """
        self.url = url
        self.cache = Path(cache)
        self._password = password
        self._mongo = mongo if mongo is not None else MongoSettings()
        self._timeout = timeout
        self._store_factory = store_factory
        self._transport = transport

    async def run(self) -> BootstrapResult:
        """Try the cache, then the remote source.

        Returns:
            The bootstrap result.

        Raises:
            InvalidArgument: If the password is not a non-empty string.
        """
        derive_key(self._password)
        attempts: list[BootstrapAttempt] = []

        if self.cache.exists():
            try:
                data = self.cache.read_bytes()
                settings, values = await self._apply(data)
            except Exception as e:
                logger.info("Cached configuration unusable (%s), trying %s", e, self.url)
                attempts.append(BootstrapAttempt(ConfigSource.CACHE, e))
            else:
                logger.info("Learndown configuration set from cache")
                return BootstrapResult(
                    ok=True,
                    source=ConfigSource.CACHE,
                    settings=settings,
                    values=values,
                    attempts=attempts,
                )

        try:
            data = await self._fetch()
            settings, values = await self._apply(data)
        except Exception as e:
            logger.warning("Incorrect configuration or database not responding: %s", e)
            attempts.append(BootstrapAttempt(ConfigSource.REMOTE, e))
            return BootstrapResult(ok=False, source=ConfigSource.NONE, attempts=attempts)

        logger.info("Learndown configuration set from URL")
        self._write_cache(data)
        return BootstrapResult(
            ok=True,
            source=ConfigSource.REMOTE,
            settings=settings,
            values=values,
            attempts=attempts,
        )

    async def _fetch(self) -> bytes:
        """Read the blob from the remote source."""
        if not self.url:
            raise ValueError("No configuration URL")
        if not self.url.startswith(("http://", "https://")):
            return Path(self.url).read_bytes()

        async with httpx.AsyncClient(
            timeout=self._timeout,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            response = await client.get(self.url)
            response.raise_for_status()
            return response.content

    async def _apply(self, data: bytes) -> tuple[MongoSettings, dict[str, str]]:
        """Decrypt a blob, merge it and check the database answers."""
        conf = decrypt(EncryptedBlob.from_bytes(data), self._password)
        if not isinstance(conf, Mapping):
            raise DecryptionError(
                f"Configuration must be a mapping, got {type(conf).__name__}"
            )
        values = {str(key): str(value) for key, value in conf.items()}
        settings = self._mongo.merged_with(values)

        async with self._store_factory(
            settings.resolved_url,
            settings.base,
            server_selection_timeout_ms=settings.server_selection_timeout_ms,
        ) as store:
            await store.ping()
        return settings, values

    def _write_cache(self, data: bytes) -> None:
        """Store the validated ciphertext for the next run."""
        try:
            self.cache.write_bytes(data)
        except OSError as e:
            logger.warning("Cannot write configuration cache %s: %s", self.cache, e)


def export_environ(
    values: Mapping[str, str],
    environ: MutableMapping[str, str] | None = None,
) -> list[str]:
    """Copy configuration values into the environment without overwriting.

    Args:
        values: Decrypted configuration mapping.
        environ: Target mapping, os.environ by default.

    Returns:
        Names of the variables that were set.
    """
    target = os.environ if environ is None else environ
    exported = []
    for key, value in values.items():
        if target.get(key):
            continue
        target[key] = value
        exported.append(key)
    return exported


async def configure(
    url: str | None = None,
    password: str | None = None,
    cache: Path | str | None = None,
    export_env: bool = False,
    **kwargs: Any,
) -> bool:
    """Configure the database coordinates for the course.

    Missing arguments are read from the bootstrap settings.

    Args:
        url: URL of the encrypted configuration.
        password: Password to decrypt it.
        cache: Local cache file.
        export_env: Also copy the values to os.environ (existing variables
            are kept).
        **kwargs: Passed to ConfigBootstrapper.

    Returns:
        True on success, False otherwise.
    """
    settings = get_settings()
    bootstrapper = ConfigBootstrapper(
        url=url if url is not None else settings.bootstrap.url,
        password=(
            password
            if password is not None
            else settings.bootstrap.password.get_secret_value()
        ),
        cache=cache if cache is not None else settings.bootstrap.cache,
        mongo=kwargs.pop("mongo", settings.mongo),
        timeout=kwargs.pop("timeout", settings.bootstrap.timeout),
        **kwargs,
    )
    result = await bootstrapper.run()
    if result and export_env:
        export_environ(result.values)
    return result.ok
