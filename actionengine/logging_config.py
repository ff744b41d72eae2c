"""
Structured logging configuration using structlog wrapping stdlib.

Console output by default, JSON lines when ACTION_ENGINE_LOG_FORMAT=json.
Modules keep using ``logging.getLogger(__name__)``; records from both
stdlib and structlog loggers go through the same formatter.

Usage:
    from actionengine.logging_config import setup_logging
    setup_logging()
"""

from __future__ import annotations

import logging
import os
import sys

import structlog


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    if level is None:
        level = os.environ.get("ACTION_ENGINE_LOG_LEVEL", "INFO")

    if json_output is None:
        json_output = os.environ.get("ACTION_ENGINE_LOG_FORMAT", "").lower() == "json"

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Records created by plain stdlib loggers skip the structlog chain,
    # so they get the shared processors here instead.
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)


def bind_session(session_id: str | None) -> None:
    """Attach the Flow session id to every log line until cleared."""
    if session_id is None:
        structlog.contextvars.unbind_contextvars("flow_session_id")
    else:
        structlog.contextvars.bind_contextvars(flow_session_id=session_id)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


__all__ = ["bind_session", "get_logger", "setup_logging"]
