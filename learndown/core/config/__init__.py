# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for learndown.

This package provides centralized configuration management:
- Settings: Pydantic-based settings loaded from environment variables
- Bootstrap: MongoDB coordinates resolved from an encrypted blob

Example:
    >>> from learndown.core.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.tracking.log_dir)
    shiny_logs
"""

from learndown.core.config.bootstrap import (
    BootstrapAttempt,
    BootstrapResult,
    ConfigBootstrapper,
    ConfigSource,
    configure,
    export_environ,
)
from learndown.core.config.settings import (
    MONGO_ENV_KEYS,
    BootstrapSettings,
    MongoSettings,
    Settings,
    TrackingSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "clear_settings_cache",
    # Subsettings
    "MongoSettings",
    "BootstrapSettings",
    "TrackingSettings",
    "MONGO_ENV_KEYS",
    # Bootstrap
    "ConfigBootstrapper",
    "ConfigSource",
    "BootstrapAttempt",
    "BootstrapResult",
    "configure",
    "export_environ",
]
