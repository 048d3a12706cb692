# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Registry of the active application sessions.

The process keeps running while at least one session is active; the
delayed shutdown scheduled on quit consults this registry to decide
whether the process may stop.

Thread-safety: the registry is only mutated from event loop callbacks,
which the loop runs one at a time, so no lock is used.
"""

import logging

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Set of active session identifiers.

    Example:
        registry = SessionRegistry()
        registry.add("token-1")
        registry.discard("token-1")
        assert not registry.has_active
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._active: set[str] = set()

    def add(self, session_id: str) -> bool:
        """Register a started session.

        Returns:
            True if the session was not registered yet.
        """
        if session_id in self._active:
            return False
        self._active.add(session_id)
        logger.info("Running sessions: %d", len(self._active))
        return True

    def discard(self, session_id: str) -> bool:
        """Unregister an ended session.

        Returns:
            True if the session was registered.
        """
        if session_id not in self._active:
            return False
        self._active.remove(session_id)
        logger.info("Running sessions: %d", len(self._active))
        return True

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._active

    def __len__(self) -> int:
        return len(self._active)

    @property
    def active_count(self) -> int:
        """Number of active sessions."""
        return len(self._active)

    @property
    def has_active(self) -> bool:
        """Whether any session is still active."""
        return bool(self._active)

    def clear(self) -> None:
        """Forget every session."""
        self._active.clear()


# Singleton instance
_registry: SessionRegistry | None = None


def get_session_registry() -> SessionRegistry:
    """Get the process-wide session registry.

    Returns:
        SessionRegistry instance.
    """
    global _registry
    if _registry is None:
        _registry = SessionRegistry()
    return _registry


def reset_session_registry() -> None:
    """Reset the registry singleton.

    Useful for testing to ensure clean state between tests.
    """
    global _registry
    if _registry is not None:
        _registry.clear()
    _registry = None
