# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the session registry."""

import random

import pytest

from learndown.domains.tracking.registry import (
    SessionRegistry,
    get_session_registry,
    reset_session_registry,
)


class TestSessionRegistry:
    """Tests for SessionRegistry."""

    def test_starts_empty(self) -> None:
        """Test that a new registry has no active session."""
        registry = SessionRegistry()

        assert registry.active_count == 0
        assert not registry.has_active

    def test_add_and_discard(self) -> None:
        """Test registering and unregistering a session."""
        registry = SessionRegistry()

        assert registry.add("token-1")
        assert "token-1" in registry
        assert registry.discard("token-1")
        assert "token-1" not in registry

    def test_duplicates_counted_once(self) -> None:
        """Test that a session registered twice counts once."""
        registry = SessionRegistry()
        registry.add("token-1")

        assert not registry.add("token-1")
        assert len(registry) == 1

    def test_discard_unknown(self) -> None:
        """Test that ending an unknown session changes nothing."""
        registry = SessionRegistry()
        registry.add("token-1")

        assert not registry.discard("token-2")
        assert registry.active_count == 1

    @pytest.mark.parametrize("seed", range(5))
    def test_count_is_starts_minus_ends(self, seed: int) -> None:
        """Test that N starts and M ends leave N - M sessions in any order."""
        rng = random.Random(seed)
        started = [f"token-{i}" for i in range(10)]
        ended = rng.sample(started, 4)
        registry = SessionRegistry()

        pending = list(started)
        done: set[str] = set()
        while pending or len(done) < len(ended):
            candidates = [s for s in ended if s in registry and s not in done]
            if candidates and (not pending or rng.random() < 0.5):
                session = rng.choice(candidates)
                registry.discard(session)
                done.add(session)
            else:
                registry.add(pending.pop(rng.randrange(len(pending))))

        assert registry.active_count == len(started) - len(ended)


class TestRegistrySingleton:
    """Tests for the process-wide registry."""

    def test_returns_same_instance(self) -> None:
        """Test that get_session_registry returns a singleton."""
        assert get_session_registry() is get_session_registry()

    def test_reset(self) -> None:
        """Test that reset gives a fresh registry."""
        registry = get_session_registry()
        registry.add("token-1")

        reset_session_registry()

        assert get_session_registry() is not registry
        assert not get_session_registry().has_active
