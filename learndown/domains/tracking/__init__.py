# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Session event tracking.

This package captures the interaction events of learndown course
applications and relays them to MongoDB:
- Local capture of each session into a JSON artifact (recorder)
- Normalization of artifacts into EventRecord rows (normalizer)
- Transfer of artifacts, deleted only once inserted (transfer)
- Session lifecycle, submit and quit handling (controller)

Usage:
    from learndown.domains.tracking import track_events

    tracker = await track_events(session, app="app01")
    tracker.record_input("slider", 5, type="numeric", binding="shiny.sliderInput")
    await tracker.submit(solution={"slider": 5})
    await tracker.quit()
"""

from learndown.domains.tracking.controller import (
    AppSession,
    NoticeLevel,
    SessionTracker,
    parse_query,
    track_events,
)
from learndown.domains.tracking.grading import check_answer
from learndown.domains.tracking.models import (
    QUIT_INPUT_ID,
    RESULT_INPUT_ID,
    Correctness,
    ErrorEvent,
    EventKind,
    EventRecord,
    InputEvent,
    OutputEvent,
    RawSessionLog,
    SessionInfo,
)
from learndown.domains.tracking.normalizer import (
    ParseError,
    normalize,
    read_session_log,
    read_shinylogs,
)
from learndown.domains.tracking.recorder import SessionRecorder, resolve_log_dir
from learndown.domains.tracking.registry import (
    SessionRegistry,
    get_session_registry,
    reset_session_registry,
)
from learndown.domains.tracking.transfer import (
    LogTransferPipeline,
    list_artifacts,
    record_session_log,
    record_shiny,
)

__all__ = [
    # Controller
    "AppSession",
    "NoticeLevel",
    "SessionTracker",
    "parse_query",
    "track_events",
    # Grading
    "check_answer",
    # Models
    "QUIT_INPUT_ID",
    "RESULT_INPUT_ID",
    "Correctness",
    "EventKind",
    "EventRecord",
    "RawSessionLog",
    "SessionInfo",
    "InputEvent",
    "ErrorEvent",
    "OutputEvent",
    # Normalizer
    "ParseError",
    "normalize",
    "read_session_log",
    "read_shinylogs",
    # Recorder
    "SessionRecorder",
    "resolve_log_dir",
    # Registry
    "SessionRegistry",
    "get_session_registry",
    "reset_session_registry",
    # Transfer
    "LogTransferPipeline",
    "list_artifacts",
    "record_session_log",
    "record_shiny",
]
