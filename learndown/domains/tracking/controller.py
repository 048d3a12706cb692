# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Session tracking for learndown course applications.

A SessionTracker follows one application session from start to end:

1. On start, the session is registered and its user identified from the
   ``login`` query-string parameter. Anonymous sessions are not tracked.
2. Events are captured into a local buffer directory while the session
   runs.
3. When the session ends, the buffer is written as an artifact and the
   LogTransferPipeline moves it to MongoDB, preferring the server URL
   when the application runs from a server and that URL answers.

The tracker also implements the Submit and Quit buttons: submit() grades
the current inputs against a solution and records the result, quit()
closes the session and stops the whole process after a delay once no
session is active anymore.

The UI framework hosting the application is reached through AppSession,
which hosts implement.

Usage:
    tracker = await track_events(session, app="app01")
    ...
    await tracker.submit(solution={"slider": 5}, comment="exercise 1")
    await tracker.quit()
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable
from urllib.parse import parse_qs

from learndown.core.config.settings import MongoSettings, Settings, get_settings
from learndown.core.security.cipher import InvalidArgument
from learndown.domains.tracking.grading import check_answer
from learndown.domains.tracking.models import QUIT_INPUT_ID, RESULT_INPUT_ID
from learndown.domains.tracking.recorder import SessionRecorder, resolve_log_dir
from learndown.domains.tracking.registry import SessionRegistry, get_session_registry
from learndown.domains.tracking.transfer import LogTransferPipeline
from learndown.infrastructure.database.mongo import MongoStore, check_connection
from learndown.utils.json import dumps_compact
from learndown.utils.logging import session_context

logger = logging.getLogger(__name__)


class NoticeLevel(str, Enum):
    """Severity of a notice shown to the user."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class AppSession(ABC):
    """A user session of the hosting UI framework.

    Hosts forward user-driven input changes, outputs and errors to the
    tracker (record_input, record_output, record_error). The reserved
    ``quit`` and ``learndown_result_`` inputs are recorded by the tracker
    itself and should not be forwarded.
    """

    @property
    @abstractmethod
    def session_id(self) -> str:
        """Unique token of the session."""

    @property
    @abstractmethod
    def url_search(self) -> str:
        """Query string of the URL the application was opened with."""

    @property
    def user(self) -> str | None:
        """Authenticated user name, when the host knows it."""
        return None

    @abstractmethod
    def get_input(self, input_id: str) -> Any:
        """Current value of an input."""

    @abstractmethod
    async def set_input_value(self, input_id: str, value: str) -> None:
        """Update the value of a text input on the client."""

    def update_button_label(self, input_id: str, label: str) -> None:
        """Change the label of an action button."""

    @abstractmethod
    def notify(self, message: str, level: NoticeLevel = NoticeLevel.INFO) -> None:
        """Show a short notice to the user."""

    @abstractmethod
    def on_ended(self, callback: Callable[[], Awaitable[None]]) -> None:
        """Register a coroutine function to run when the session ends."""

    @abstractmethod
    async def close(self) -> None:
        """Close the session from the server side."""


def parse_query(url_search: str) -> dict[str, str]:
    """Parse a query string, keeping the first value of each parameter."""
    parsed = parse_qs(url_search.lstrip("?"), keep_blank_values=True)
    return {key: values[0] for key, values in parsed.items() if values}


def _stop_event_loop() -> None:
    asyncio.get_running_loop().stop()


class SessionTracker:
    """Track the events of one application session.

    Attributes:
        session: The hosting framework session.
        app: Application name.
        login: Login of the tracked user, None when not tracking.
        log_dir: Buffer directory, None when not tracking.
        recorder: Event recorder, None when not tracking.
    """

    def __init__(
        self,
        session: AppSession,
        app: str = "app",
        settings: Settings | None = None,
        mongo: MongoSettings | None = None,
        registry: SessionRegistry | None = None,
        store_factory: Callable[..., MongoStore] = MongoStore,
        on_shutdown: Callable[[], None] | None = None,
    ) -> None:
        """Initialize the tracker.

        Args:
            session: The hosting framework session.
            app: Application name, stored as ``shiny_<app>``.
            settings: Application settings (defaults to get_settings()).
            mongo: MongoDB settings, e.g. from a bootstrap result
                (defaults to settings.mongo).
            registry: Session registry (defaults to the process registry).
            store_factory: Store class or factory for probes and inserts.
            on_shutdown: Called to stop the application after the last quit
                (defaults to stopping the running event loop).
        """
        self.session = session
        self.app = app
        self._settings = settings or get_settings()
        self._mongo = mongo if mongo is not None else self._settings.mongo
        self._registry = registry if registry is not None else get_session_registry()
        self._store_factory = store_factory
        self._on_shutdown = on_shutdown or _stop_event_loop
        self.login: str | None = None
        self.log_dir: Path | None = None
        self.recorder: SessionRecorder | None = None
        self._started = False
        self._ended = False
        self._shutdown_handle: asyncio.TimerHandle | None = None

    @property
    def tracking(self) -> bool:
        """Whether events of this session are recorded."""
        return self.recorder is not None

    async def start(self) -> bool:
        """Register the session and start tracking it if the user is known.

        Returns:
            True if events are recorded for this session.
        """
        if self._started:
            return self.tracking
        self._started = True

        session_id = self.session.session_id
        self._registry.add(session_id)
        self.session.on_ended(self._on_session_ended)

        query = parse_query(self.session.url_search)
        login = query.get("login")
        if not login:
            logger.info("No login: no events will be tracked")
            self.session.notify("Anonymous user, nothing is recorded.", NoticeLevel.WARNING)
            return False

        try:
            self.log_dir = resolve_log_dir(self._settings.tracking.log_dir, session_id)
        except OSError as e:
            logger.error("No writable log directory for session %s: %s", session_id, e)
            self.session.notify("Recording unavailable for this session.", NoticeLevel.WARNING)
            return False

        self.login = login
        self.recorder = SessionRecorder(
            self.log_dir,
            app=self.app,
            session_id=session_id,
            user=self._user_info(query),
        )
        logger.info("Tracking events in %s for user %s", self.log_dir, login)
        self.session.notify(f"Recording active for {login}", NoticeLevel.INFO)
        self.session.update_button_label(QUIT_INPUT_ID, "Save/Quit")
        return True

    def _user_info(self, query: dict[str, str]) -> str:
        """User document stored with the session: query string plus user."""
        user = (
            self.session.user
            or self._settings.tracking.proxy_username
            or ""
        )
        return dumps_compact({**query, "user": user})

    def record_input(self, name: str, value: Any, type: str = "", binding: str = "") -> None:
        """Record an input change (no-op when not tracking)."""
        if self.recorder is not None:
            self.recorder.record_input(name, value, type=type, binding=binding)

    def record_output(self, name: str, value: Any, binding: str = "") -> None:
        """Record an output (no-op when not tracking)."""
        if self.recorder is not None:
            self.recorder.record_output(name, value, binding=binding)

    def record_error(self, name: str, error: str) -> None:
        """Record an error (no-op when not tracking)."""
        if self.recorder is not None:
            self.recorder.record_error(name, error)

    async def resolve_target_url(self) -> str:
        """Pick the MongoDB URL used for the transfer.

        The server URL is preferred when the application runs from a server
        and that URL answers a ping; the default URL is used otherwise.
        """
        mongo = self._mongo
        url = mongo.resolved_url
        if self._settings.tracking.is_local:
            logger.debug("Application runs locally")
            return url

        logger.debug("Application runs from a server")
        server_url = mongo.resolved_server_url
        if server_url and await check_connection(
            server_url,
            mongo.base,
            timeout_ms=mongo.server_selection_timeout_ms,
            store_factory=self._store_factory,
        ):
            return server_url
        return url

    async def _on_session_ended(self) -> None:
        """Write the session buffer and transfer it, once."""
        if self._ended:
            return
        self._ended = True
        self._registry.discard(self.session.session_id)

        with session_context(session=self.session.session_id, app=self.app):
            await self._transfer_session()

    async def _transfer_session(self) -> None:
        if self.recorder is None or self.log_dir is None:
            return

        try:
            self.recorder.close()
        except OSError as e:
            logger.error("Cannot write log file for session %s: %s", self.session.session_id, e)
            return

        tracking = self._settings.tracking
        url = await self.resolve_target_url()
        logger.debug("Database base: %s, collection: %s", self._mongo.base, tracking.collection)
        pipeline = LogTransferPipeline(
            url,
            self._mongo.base,
            collection=tracking.collection,
            version=tracking.app_version,
            log_errors=tracking.log_errors,
            log_outputs=tracking.log_outputs,
            drop_dir=tracking.drop_dir,
            server_selection_timeout_ms=self._mongo.server_selection_timeout_ms,
            store_factory=self._store_factory,
        )
        try:
            await pipeline.transfer_all(self.log_dir)
        except Exception as e:
            logger.error("Transfer of session %s failed: %s", self.session.session_id, e)

    async def submit(
        self,
        solution: Mapping[str, Any] | None = None,
        comment: str = "",
        message_success: str = "Correct",
        message_error: str = "Incorrect",
    ) -> bool:
        """Check the answer and record the result.

        Args:
            solution: Expected input values keyed by input identifier. With
                None the answer is always correct (the submission is only
                recorded).
            comment: Free text stored with the result.
            message_success: Notice shown for a correct answer.
            message_error: Notice shown for a wrong answer.

        Returns:
            Whether the answer is correct.

        Raises:
            InvalidArgument: If solution is not a mapping.
        """
        if solution is None:
            answer: dict[str, Any] = {}
            correct = True
        else:
            if not isinstance(solution, Mapping):
                raise InvalidArgument("The solution must be a mapping of input identifiers to values")
            answer = {item: self.session.get_input(item) for item in solution}
            correct = check_answer(answer, solution)

        if correct:
            self.session.notify(message_success, NoticeLevel.SUCCESS)
        else:
            self.session.notify(message_error, NoticeLevel.ERROR)

        value = dumps_compact(
            {
                "correct": correct,
                "answer": answer,
                "solution": dict(solution) if solution is not None else None,
                "comment": comment,
            }
        )
        await self.session.set_input_value(RESULT_INPUT_ID, value)
        self.record_input(RESULT_INPUT_ID, value, type="character", binding="shiny.textInput")
        logger.debug("Answer submitted, correct: %s", correct)
        return correct

    async def quit(self, delay: float | None = None) -> None:
        """Close the session, then stop the application once idle.

        Args:
            delay: Seconds before checking whether another session is
                still active (defaults to the quit_delay setting). With -1
                the application keeps running.
        """
        self.record_input(QUIT_INPUT_ID, 1, binding="shiny.actionButtonInput")
        await self.session.close()

        if delay is None:
            delay = self._settings.tracking.quit_delay
        if delay == -1:
            return

        loop = asyncio.get_running_loop()
        self._shutdown_handle = loop.call_later(delay, self._shutdown_if_idle)

    def _shutdown_if_idle(self) -> None:
        if self._registry.has_active:
            logger.debug("Sessions still active: %d", self._registry.active_count)
            return
        logger.info("No active session left, stopping the application")
        self._on_shutdown()


async def track_events(session: AppSession, **kwargs: Any) -> SessionTracker:
    """Create a tracker for a session and start it.

    Args:
        session: The hosting framework session.
        **kwargs: Passed to SessionTracker.

    Returns:
        The started tracker.
    """
    tracker = SessionTracker(session, **kwargs)
    await tracker.start()
    return tracker
