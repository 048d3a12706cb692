# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Convert raw session logs into EventRecord rows.

A raw session log holds heterogeneous captures (session metadata, input
changes, errors, outputs). normalize() flattens them into EventRecord rows
sharing one layout, reclassifies the reserved ``quit`` and
``learndown_result_`` inputs, guarantees a single result row per session
and sorts everything by timestamp.

Usage:
    from learndown.domains.tracking.normalizer import read_shinylogs

    records = read_shinylogs("shiny_logs/shinylogs_app01_1598274821730014000.json",
                             version="1.0.0")
"""

import getpass
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from learndown.domains.tracking.models import (
    QUIT_INPUT_ID,
    RESULT_INPUT_ID,
    SESSION_TYPE,
    Correctness,
    EventKind,
    EventRecord,
    RawSessionLog,
)
from learndown.utils.json import dumps_compact, parse_or_default

ARTIFACT_SUFFIX = ".json"
_NO_RESULT_DATA = '{"type":"","binding":"shiny.textInput"}'


class ParseError(Exception):
    """Raised when a session log artifact cannot be read."""

    def __init__(self, path: Path, reason: str) -> None:
        """Initialize ParseError.

        Args:
            path: Path to the artifact that failed to load.
            reason: Description of why it failed to load.
        """
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to read session log '{path}': {reason}")


def as_text(value: Any) -> str:
    """Coerce an input or output value to the text stored in records."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple, dict)):
        return dumps_compact(value)
    return str(value)


def _data(type_: str, binding: str) -> str:
    return dumps_compact({"type": type_, "binding": binding})


def _default_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return ""


def _split_result(value: str) -> tuple[str, str]:
    """Extract the correctness flag from a submitted result payload.

    Returns:
        Tuple (correct, remaining value).
    """
    payload = parse_or_default(value, None, expect=dict)
    if payload is None or "correct" not in payload:
        return Correctness.NA.value, value

    correct = payload.pop("correct")
    if isinstance(correct, bool):
        flag = Correctness.TRUE.value if correct else Correctness.FALSE.value
    elif correct is None:
        flag = Correctness.NA.value
    else:
        flag = str(correct).upper()
        if flag not in (Correctness.TRUE.value, Correctness.FALSE.value):
            flag = Correctness.NA.value
    return flag, dumps_compact(payload)


def normalize(
    raw_log: RawSessionLog,
    version: str = "0",
    log_errors: bool = True,
    log_outputs: bool = False,
    default_user: str | None = None,
) -> list[EventRecord]:
    """Flatten a raw session log into sorted EventRecord rows.

    Args:
        raw_log: The captured session.
        version: Version of the course application.
        log_errors: Include error events.
        log_outputs: Include output events.
        default_user: User name when the log carries none (defaults to the
            login name of the process owner).

    Returns:
        Records sorted by date, with one start, one stop and exactly one
        result record.
    """
    session = raw_log.session
    user_data = parse_or_default(session.user, {}, expect=dict)

    user = as_text(user_data.get("user"))
    if not user:
        user = default_user if default_user is not None else _default_user()
    common = {
        "tutorial": f"shiny_{session.app}",
        "version": str(version),
        "user": user,
        "login": as_text(user_data.get("login")),
        "email": as_text(user_data.get("iemail")).lower(),
    }

    rows: list[dict[str, Any]] = [
        {
            "session": session.sessionid,
            "date": session.server_connected,
            "event": EventKind.START,
            "data": _data(SESSION_TYPE, ""),
            "value": session.user,
        },
        {
            "session": session.sessionid,
            "date": session.server_disconnected,
            "event": EventKind.STOP,
            "data": _data(SESSION_TYPE, ""),
        },
    ]

    for item in raw_log.inputs:
        rows.append(
            {
                "session": item.sessionid,
                "date": item.timestamp,
                "label": item.name,
                "event": EventKind.INPUTS,
                "data": _data(item.type, item.binding),
                "value": as_text(item.value),
            }
        )

    if log_errors:
        for error in raw_log.errors:
            rows.append(
                {
                    "session": error.sessionid,
                    "date": error.timestamp,
                    "label": error.name,
                    "event": EventKind.ERRORS,
                    "data": _data("text", ""),
                    "value": error.error,
                }
            )

    if log_outputs:
        for output in raw_log.outputs:
            rows.append(
                {
                    "session": output.sessionid,
                    "date": output.timestamp,
                    "label": output.name,
                    "event": EventKind.OUTPUTS,
                    "data": _data("", output.binding),
                    "value": as_text(output.value),
                }
            )

    result_row: dict[str, Any] | None = None
    for row in rows:
        label = row.get("label", "")
        if label == QUIT_INPUT_ID:
            row["event"] = EventKind.QUIT
            row["label"] = ""
        elif label == RESULT_INPUT_ID and (
            result_row is None or row["date"] >= result_row["date"]
        ):
            result_row = row

    # Only the last submission is the session result; earlier ones stay inputs.
    if result_row is not None:
        result_row["event"] = EventKind.RESULT
        result_row["label"] = ""
        result_row["correct"], result_row["value"] = _split_result(result_row["value"])
    else:
        rows.append(
            {
                "session": session.sessionid,
                "date": session.server_disconnected,
                "correct": Correctness.NA.value,
                "event": EventKind.RESULT,
                "data": _NO_RESULT_DATA,
            }
        )

    records = [EventRecord(**common, **row) for row in rows]
    records.sort(key=lambda record: record.date)
    return records


def read_session_log(path: Path | str) -> RawSessionLog:
    """Load a session log artifact.

    Args:
        path: Path to the JSON artifact.

    Returns:
        The validated raw session log.

    Raises:
        ParseError: If the file is missing, unreadable or malformed.
    """
    path = Path(path)
    if path.suffix != ARTIFACT_SUFFIX:
        raise ParseError(path, f"Only {ARTIFACT_SUFFIX} session logs can be read")
    if not path.is_file():
        raise ParseError(path, "File does not exist")

    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(path, f"Cannot read file: {e}") from e

    try:
        return RawSessionLog.model_validate_json(content)
    except ValidationError as e:
        raise ParseError(path, f"Invalid session log: {e}") from e


def read_shinylogs(
    path: Path | str,
    version: str = "0",
    log_errors: bool = True,
    log_outputs: bool = False,
) -> list[EventRecord]:
    """Read an artifact and normalize it.

    Raises:
        ParseError: If the artifact cannot be read.
    """
    return normalize(
        read_session_log(path),
        version=version,
        log_errors=log_errors,
        log_outputs=log_outputs,
    )
