# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Lenient JSON helpers.

Event logs embed small JSON documents (user information, submitted
results) written by the browser side of course applications. A malformed
document must never abort the conversion of a whole session, so every
such value is read through parse_or_default().
"""

import json
from typing import Any


def parse_or_default(text: Any, default: Any = None, expect: type | None = None) -> Any:
    """Parse a JSON document, returning ``default`` when it cannot be used.

    Args:
        text: The JSON text. Non-string inputs yield the default.
        default: Value returned on any parse failure.
        expect: Optional type the parsed value must be an instance of.

    Returns:
        The parsed value, or ``default``.

    Example:
        >>> parse_or_default('{"login": "jdoe"}', {}, expect=dict)
        {'login': 'jdoe'}
        >>> parse_or_default("not json", {})
        {}
    """
    if not isinstance(text, (str, bytes, bytearray)):
        return default
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return default
    if expect is not None and not isinstance(value, expect):
        return default
    return value


def dumps_compact(value: Any) -> str:
    """Serialize to compact JSON (no whitespace, non-ASCII kept as is)."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
