# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tracking data models.

Two families of models live here:

- The raw session log, as captured by the course application for one
  session and stored as a JSON artifact (RawSessionLog and its events).
- The canonical EventRecord rows that are inserted into MongoDB. Their
  layout matches the documents written by learnr tutorials, so both kinds
  of courseware share one collection format.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from learndown.utils.datetime import ensure_utc

# Reserved input identifiers
QUIT_INPUT_ID = "quit"
RESULT_INPUT_ID = "learndown_result_"


class EventKind(str, Enum):
    """Value of the ``event`` column of an EventRecord.

    START and STOP are the two ``session.id`` records of a session.
    """

    START = "start"
    STOP = "stop"
    INPUTS = "inputs"
    ERRORS = "errors"
    OUTPUTS = "outputs"
    RESULT = "result"
    QUIT = "quit"


class Correctness(str, Enum):
    """Grading of a result record."""

    TRUE = "TRUE"
    FALSE = "FALSE"
    NA = "NA"


SESSION_TYPE = "session.id"


class _TimestampedModel(BaseModel):
    @field_validator("timestamp", "server_connected", "server_disconnected", check_fields=False)
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class SessionInfo(_TimestampedModel):
    """Metadata of one application session.

    Attributes:
        app: Application name.
        sessionid: Session token.
        server_connected: When the session started.
        server_disconnected: When the session ended.
        user: JSON document describing the user (query string + login).
    """

    app: str
    sessionid: str
    server_connected: datetime
    server_disconnected: datetime
    user: str = ""


class InputEvent(_TimestampedModel):
    """An input value change."""

    sessionid: str
    name: str
    timestamp: datetime
    value: Any = None
    type: str = ""
    binding: str = ""


class ErrorEvent(_TimestampedModel):
    """An error raised while computing an output."""

    sessionid: str
    name: str
    timestamp: datetime
    error: str = ""


class OutputEvent(_TimestampedModel):
    """An output recomputation."""

    sessionid: str
    name: str
    timestamp: datetime
    value: Any = None
    binding: str = ""


class RawSessionLog(BaseModel):
    """Everything captured for one session, before normalization."""

    session: SessionInfo
    inputs: list[InputEvent] = Field(default_factory=list)
    errors: list[ErrorEvent] = Field(default_factory=list)
    outputs: list[OutputEvent] = Field(default_factory=list)


class EventRecord(BaseModel):
    """One transfer-ready telemetry row.

    Attributes:
        session: Session token.
        date: Event timestamp (UTC).
        tutorial: Tutorial identifier, ``shiny_<app>``.
        version: Application version.
        user: User name.
        login: User login.
        email: User email, lower-cased.
        label: Input or output name (empty for session, quit and result).
        correct: TRUE/FALSE/NA on result records, empty otherwise.
        event: Event kind.
        data: Compact JSON ``{"type": ..., "binding": ...}``.
        value: Event value as text.
    """

    model_config = ConfigDict(frozen=True)

    session: str
    date: datetime
    tutorial: str
    version: str
    user: str
    login: str
    email: str
    label: str = ""
    correct: str = ""
    event: EventKind
    data: str = '{"type":"","binding":""}'
    value: str = ""

    def to_document(self) -> dict[str, Any]:
        """Document inserted into MongoDB."""
        return self.model_dump(mode="python") | {"event": self.event.value}
