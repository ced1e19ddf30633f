"""
Logging for meetwatch: structlog on top of the stdlib logging module.

Console output when run by hand, one JSON object per line when
MEETWATCH_LOG_FORMAT=json (or logging.json_output in the YAML config).
stdlib loggers (slot engine, config, aiohttp, anthropic) go through the
same renderer, so every line carries the same fields.

While a message moves through the pipeline its id is bound into the
context, so every line logged on its behalf carries `message_id`:

    with bound_message(message_id):
        logger.info("Classified")

Usage:
    from meetwatch.logging_config import get_logger, setup_logging

    setup_logging(level="DEBUG")
    logger = get_logger(__name__)
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from typing import Iterator

import structlog

# Client libraries that log every request at INFO
NOISY_LOGGERS = ("aiohttp", "anthropic", "httpx", "httpcore")


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """
    Configure structlog and the root stdlib logger.

    Args:
        level: Level name; defaults to MEETWATCH_LOG_LEVEL, then INFO
        json_output: JSON lines instead of console output; defaults to
            MEETWATCH_LOG_FORMAT == "json"
    """
    level = level or os.environ.get("MEETWATCH_LOG_LEVEL", "INFO")
    if json_output is None:
        json_output = os.environ.get("MEETWATCH_LOG_FORMAT", "").lower() == "json"

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    shared = _shared_processors()
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


@contextmanager
def bound_message(message_id: str) -> Iterator[None]:
    """Bind message_id into the logging context for the duration of the block."""
    with structlog.contextvars.bound_contextvars(message_id=message_id):
        yield


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


__all__ = ["bound_message", "get_logger", "setup_logging"]
