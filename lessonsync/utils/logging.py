# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Structured logging configuration using structlog.

Library modules log through plain ``logging.getLogger(__name__)`` loggers;
the composition root uses structlog loggers from get_logger(). Both end up
in one stdlib handler whose ProcessorFormatter runs the structlog chain, so
every record carries the same timestamp, level, logger name and the context
bound with log_context() (for example the id of the running sync).

Output is JSON in production and colored console output in development.

Example:
    >>> from lessonsync.utils.logging import setup_logging, log_context
    >>> setup_logging(get_settings())
    >>> with log_context(sync_id="3f2a9c1e"):
    ...     logging.getLogger("lessonsync.sync").info("Fetching manifests")
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from lessonsync.core.config.settings import Settings

HANDLER_NAME = "lessonsync"

NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "sqlalchemy",
    "aiosqlite",
    "apscheduler",
    "asyncio",
)


def _shared_processors() -> list[Processor]:
    # Runs for structlog events and for foreign stdlib records alike
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderers(settings: "Settings") -> list[Processor]:
    if settings.is_development or settings.debug:
        return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]
    return [
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]


def setup_logging(settings: "Settings") -> None:
    """Configure structured logging for the application.

    Installs one stdout handler on the root logger, replacing the one a
    previous call installed, and points structlog at it.

    Args:
        settings: Application settings containing log_level and debug flag.
    """
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    shared = _shared_processors()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        # stdlib loggers carry the name add_logger_name reads
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *_renderers(settings),
        ],
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(log_level)

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger("lessonsync").setLevel(log_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger for the given module name.

    Args:
        name: Usually __name__ of the calling module.

    Returns:
        A bound structlog logger instance.
    """
    return structlog.get_logger(name)


@contextmanager
def log_context(**kwargs: object) -> Iterator[None]:
    """Bind context variables to every log record emitted inside the block.

    Previous values of the same keys are restored on exit, so nested and
    concurrent units of work (each asyncio task has its own context) never
    see each other's bindings.

    Args:
        **kwargs: Key-value pairs to bind to the logging context.

    Example:
        >>> with log_context(source="NCERT"):
        ...     logger.info("Fetched %d chapters", 12)  # Includes source
    """
    with structlog.contextvars.bound_contextvars(**kwargs):
        yield
