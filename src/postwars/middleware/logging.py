"""Structured logging configuration with structlog."""

import logging

import structlog

from postwars.config import Settings


def setup_logging(settings: Settings) -> None:
    """Configure structlog for JSON (production) or console (development) output.

    Service modules log through the standard library; both end up in the
    root handler configured here.
    """
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level)
    logging.getLogger("postwars").setLevel(level)
    # SQL echo is controlled by the engine, not the app log level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
