# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Structured logging configuration using structlog.

Every record goes through one structlog processor chain, whether it comes
from a structlog logger (the command line tools) or from a standard
``logging.getLogger(__name__)`` module logger (the tracking pipeline).
Context bound with :func:`session_context` is therefore attached to the
records of every module that logs on behalf of a session.

Records are rendered as JSON in production and as colored console output
in development. They go to stderr so that the output of the command line
tools on stdout stays machine readable.

Example:
    >>> import logging
    >>> from learndown.utils.logging import setup_logging, session_context
    >>> from learndown.core.config import get_settings
    >>> setup_logging(get_settings())
    >>> with session_context(session="token-1", app="app01"):
    ...     logging.getLogger("learndown.domains.tracking").info("Transfer started")
"""

import logging
import sys
from collections.abc import Generator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from learndown.core.config.settings import Settings

# Libraries whose debug output drowns the transfer trace
_QUIET_LOGGERS = ("pymongo", "httpx", "httpcore", "asyncio")

_handler: logging.Handler | None = None


def _renderer(settings: "Settings") -> list[Processor]:
    if settings.is_development or settings.debug:
        return [structlog.dev.ConsoleRenderer(colors=True)]
    return [
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]


def setup_logging(settings: "Settings") -> None:
    """Configure structured logging for the application.

    Installs one stderr handler on the root logger whose formatter runs the
    structlog processors, and points structlog at the standard library so
    both kinds of loggers share it. Calling it again replaces the handler.

    Args:
        settings: Application settings containing log_level and debug flag.
    """
    global _handler

    # Debug mode traces every transfer step
    level_name = "DEBUG" if settings.debug else settings.log_level
    log_level = getattr(logging, level_name.upper(), logging.INFO)

    # Applied to structlog events and to standard library records alike
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *_renderer(settings),
        ],
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)
    root.addHandler(handler)
    root.setLevel(log_level)
    _handler = handler

    for logger_name in _QUIET_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger("learndown").setLevel(log_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger for the given module name.

    Args:
        name: Usually __name__ of the calling module.

    Returns:
        A bound structlog logger instance.
    """
    return structlog.get_logger(name)


@contextmanager
def session_context(**values: Any) -> Generator[None, None, None]:
    """Attach values to every record logged in the current context.

    Args:
        **values: Key-value pairs, e.g. the session token and application.
    """
    with structlog.contextvars.bound_contextvars(**values):
        yield
