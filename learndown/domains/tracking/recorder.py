# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Local capture of session events.

A SessionRecorder buffers the events of one application session in
memory and writes them, when the session ends, as a single JSON artifact
(a serialized RawSessionLog) in the session's buffer directory. Artifacts
are later picked up by the LogTransferPipeline.

Usage:
    directory = resolve_log_dir(Path("shiny_logs"), session_id)
    recorder = SessionRecorder(directory, app="app01", session_id=session_id,
                               user='{"login": "jdoe"}')
    recorder.record_input("slider", 5, type="numeric", binding="shiny.sliderInput")
    path = recorder.close()
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from learndown.domains.tracking.models import (
    ErrorEvent,
    InputEvent,
    OutputEvent,
    RawSessionLog,
    SessionInfo,
)
from learndown.domains.tracking.normalizer import ARTIFACT_SUFFIX
from learndown.utils.datetime import epoch_ns, utc_now

logger = logging.getLogger(__name__)

PROBE_FILE = "test.txt"


def is_writable_dir(path: Path) -> bool:
    """Create ``path`` if needed and check a file can be written in it.

    A throwaway probe file is written and removed again.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
        probe = path / PROBE_FILE
        probe.write_text("test, can be deleted", encoding="utf-8")
        probe.unlink()
    except OSError as e:
        logger.debug("Directory %s is not writable: %s", path, e)
        return False
    return True


def resolve_log_dir(preferred: Path | str, session_id: str) -> Path:
    """Choose the buffer directory of a session.

    Args:
        preferred: Configured directory.
        session_id: Session token, used for the fallback directory name.

    Returns:
        ``preferred`` when it is writable, otherwise a session-unique
        directory under the temporary directory of the process.
    """
    preferred = Path(preferred)
    if is_writable_dir(preferred):
        return preferred

    fallback = Path(tempfile.gettempdir()) / "learndown" / session_id
    fallback.mkdir(parents=True, exist_ok=True)
    logger.info("Log directory %s not writable, using %s", preferred, fallback)
    return fallback


class SessionRecorder:
    """Buffer the events of one session and write them as an artifact.

    Attributes:
        directory: Buffer directory of the session.
        app: Application name.
        session_id: Session token.
        path: Artifact path once written, else None.
    """

    def __init__(
        self,
        directory: Path | str,
        app: str,
        session_id: str,
        user: str = "",
    ) -> None:
        """Start recording a session.

        Args:
            directory: Buffer directory.
            app: Application name.
            session_id: Session token.
            user: JSON document describing the user.
        """
        self.directory = Path(directory)
        self.app = app
        self.session_id = session_id
        self.path: Path | None = None
        self._user = user
        self._connected = utc_now()
        self._inputs: list[InputEvent] = []
        self._errors: list[ErrorEvent] = []
        self._outputs: list[OutputEvent] = []

    @property
    def closed(self) -> bool:
        """Whether the artifact has been written."""
        return self.path is not None

    def record_input(self, name: str, value: Any, type: str = "", binding: str = "") -> None:
        """Record an input value change."""
        if self.closed:
            return
        self._inputs.append(
            InputEvent(
                sessionid=self.session_id,
                name=name,
                timestamp=utc_now(),
                value=value,
                type=type,
                binding=binding,
            )
        )

    def record_output(self, name: str, value: Any, binding: str = "") -> None:
        """Record an output recomputation."""
        if self.closed:
            return
        self._outputs.append(
            OutputEvent(
                sessionid=self.session_id,
                name=name,
                timestamp=utc_now(),
                value=value,
                binding=binding,
            )
        )

    def record_error(self, name: str, error: str) -> None:
        """Record an error raised while computing an output."""
        if self.closed:
            return
        self._errors.append(
            ErrorEvent(
                sessionid=self.session_id,
                name=name,
                timestamp=utc_now(),
                error=str(error),
            )
        )

    def snapshot(self) -> RawSessionLog:
        """The session captured so far, disconnected now."""
        return RawSessionLog(
            session=SessionInfo(
                app=self.app,
                sessionid=self.session_id,
                server_connected=self._connected,
                server_disconnected=utc_now(),
                user=self._user,
            ),
            inputs=list(self._inputs),
            errors=list(self._errors),
            outputs=list(self._outputs),
        )

    def close(self) -> Path:
        """Write the artifact, once.

        The file is written under a temporary name and renamed, so that a
        concurrent transfer never reads a partial artifact.

        Returns:
            The artifact path.

        Raises:
            OSError: If the artifact cannot be written.
        """
        if self.path is not None:
            return self.path

        log = self.snapshot()
        stamp = epoch_ns(log.session.server_disconnected)
        path = self.directory / f"shinylogs_{self.app}_{stamp}{ARTIFACT_SUFFIX}"
        self.directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(log.model_dump_json())
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        self.path = path
        logger.debug(
            "Session %s recorded in %s (%d inputs, %d errors, %d outputs)",
            self.session_id,
            path,
            len(log.inputs),
            len(log.errors),
            len(log.outputs),
        )
        return path
