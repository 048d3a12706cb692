# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for learndown.
Settings are loaded from environment variables with sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Database coordinates are carried by an explicit MongoSettings object instead
of being read from the process environment at each call site. Values fetched
from the encrypted configuration blob are merged into a copy of that object
with merged_with(), where explicitly configured values always take
precedence over fetched ones.

Example:
    >>> from learndown.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.tracking.collection)
    shiny
"""

from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Configuration keys understood by MongoSettings, as they appear in the
# encrypted configuration mapping and in the environment.
MONGO_ENV_KEYS: dict[str, str] = {
    "MONGO_URL": "url",
    "MONGO_URL_SERVER": "url_server",
    "MONGO_USER": "user",
    "MONGO_PASSWORD": "password",
    "MONGO_BASE": "base",
}


class MongoSettings(BaseSettings):
    """MongoDB configuration for the telemetry store.

    The URLs may embed ``{user}`` and ``{password}`` placeholders, filled
    from the ``user`` and ``password`` fields when the URL is resolved.

    Attributes:
        url: Default connection URL.
        url_server: URL to prefer when the application runs on a server.
        user: Database user name.
        password: Database password.
        base: Database name.
        server_selection_timeout_ms: How long the driver waits for a server.
    """

    model_config = SettingsConfigDict(
        env_prefix="MONGO_",
        extra="ignore",
    )

    url: str = ""
    url_server: str = ""
    user: str = ""
    password: SecretStr = SecretStr("")
    base: str = ""
    server_selection_timeout_ms: int = 5000

    def _fill(self, template: str) -> str:
        return template.replace("{user}", self.user).replace(
            "{password}", self.password.get_secret_value()
        )

    @property
    def resolved_url(self) -> str:
        """Default URL with credentials placeholders filled in."""
        return self._fill(self.url)

    @property
    def resolved_server_url(self) -> str:
        """Server URL with credentials placeholders filled in."""
        return self._fill(self.url_server)

    @property
    def is_configured(self) -> bool:
        """Check that both a URL and a database name are available."""
        return bool(self.url and self.base)

    def explicit_value(self, field_name: str) -> str:
        """Return the value of a field if it was set explicitly, else ''.

        Fields count as explicit when they were passed to the constructor or
        found in the environment, and are not empty.
        """
        if field_name not in self.model_fields_set:
            return ""
        value = getattr(self, field_name)
        if isinstance(value, SecretStr):
            return value.get_secret_value()
        return str(value)

    def merged_with(self, values: Mapping[str, Any]) -> "MongoSettings":
        """Merge fetched configuration values into a copy of these settings.

        Explicit values win: a key is only taken from ``values`` when the
        matching field has no explicit, non-empty value. Keys that do not
        belong to MongoSettings are ignored. The current object is left
        untouched.

        Args:
            values: Mapping of environment-variable names to values.

        Returns:
            A new MongoSettings instance.
        """
        update: dict[str, Any] = {}
        for key, value in values.items():
            field_name = MONGO_ENV_KEYS.get(key)
            if field_name is None or self.explicit_value(field_name):
                continue
            if field_name == "password":
                update[field_name] = SecretStr(str(value))
            else:
                update[field_name] = str(value)

        return self.model_copy(update=update)


class BootstrapSettings(BaseSettings):
    """Location and password of the encrypted configuration.

    Attributes:
        url: URL (or local path) serving the encrypted configuration blob.
        password: Password used to decrypt the blob.
        cache: Local file holding the last validated blob.
        timeout: HTTP timeout in seconds when fetching the blob.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEARNDOWN_CONFIG_",
        extra="ignore",
    )

    url: str = ""
    password: SecretStr = SecretStr("")
    cache: Path = Path(".learndown_config")
    timeout: float = 30.0


class TrackingSettings(BaseSettings):
    """Session event tracking configuration.

    Attributes:
        log_dir: Preferred directory for the local session log buffers.
        collection: MongoDB collection receiving the events.
        app_version: Version of the course application, stored with events.
        log_errors: Record error events.
        log_outputs: Record output events.
        drop_dir: Remove the buffer directory once it is drained.
        quit_delay: Seconds before the process stops after the last quit,
            or -1 to never stop it.
        server_port: Port of the hosting server; unset when running locally.
        proxy_username: User name forwarded by a ShinyProxy front end.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEARNDOWN_",
        extra="ignore",
    )

    log_dir: Path = Path("shiny_logs")
    collection: str = "shiny"
    app_version: str = "0"
    log_errors: bool = True
    log_outputs: bool = False
    drop_dir: bool = True
    quit_delay: float = 60.0
    server_port: str | None = Field(
        default=None,
        validation_alias="SHINY_PORT",
    )
    proxy_username: str | None = Field(
        default=None,
        validation_alias="SHINYPROXY_USERNAME",
    )

    @property
    def is_local(self) -> bool:
        """Check if the application runs locally rather than from a server."""
        return not self.server_port


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        mongo: MongoDB settings.
        bootstrap: Encrypted configuration settings.
        tracking: Event tracking settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # Subsettings - loaded with their own env prefixes
    mongo: MongoSettings = Field(default_factory=MongoSettings)
    bootstrap: BootstrapSettings = Field(default_factory=BootstrapSettings)
    tracking: TrackingSettings = Field(default_factory=TrackingSettings)

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing or after the configuration was bootstrapped.
    """
    get_settings.cache_clear()
