"""Structured logging for the sandbox driver."""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

LOGGER_NAME = "virtbox"

_SHARED_PROCESSORS: list[Any] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
]

_configured = False


def configure_logging(format: str = "text", level: str = "INFO") -> None:
    """Route structlog through a stdlib handler rendering text or JSON."""
    global _configured

    if format == "json":
        extra: list[Any] = [structlog.processors.dict_tracebacks]
        renderer: Any = structlog.processors.JSONRenderer()
        stream = sys.stdout
    else:
        extra = []
        renderer = structlog.dev.ConsoleRenderer(colors=False)
        stream = sys.stderr

    structlog.configure(
        processors=_SHARED_PROCESSORS
        + extra
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_SHARED_PROCESSORS,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )
    handler = logging.StreamHandler(stream=stream)
    handler.setFormatter(formatter)

    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers = [handler]
    logger.setLevel(level)
    _configured = True


def get_logger(**bindings: Any) -> structlog.stdlib.BoundLogger:
    if not _configured:
        configure_logging()
    return structlog.get_logger(LOGGER_NAME).bind(**bindings)
