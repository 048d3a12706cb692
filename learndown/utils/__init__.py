# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Utility functions and helpers for learndown.

This package contains cross-cutting utilities:
- logging: Structured logging with structlog
- datetime: Timezone-aware datetime operations
- json: Lenient JSON parsing for embedded event payloads
"""

from learndown.utils.datetime import ensure_utc, epoch_ns, format_iso, utc_now
from learndown.utils.json import dumps_compact, parse_or_default
from learndown.utils.logging import get_logger, session_context, setup_logging

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "session_context",
    # Datetime
    "utc_now",
    "ensure_utc",
    "format_iso",
    "epoch_ns",
    # JSON
    "parse_or_default",
    "dumps_compact",
]
