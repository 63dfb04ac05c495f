"""Structured logging setup.

Routes structlog through the standard library so uvicorn and
SQLAlchemy output share the same handlers and level.
"""

import logging
import sys

import structlog

from catalog_api.infrastructure.config import settings


def configure_logging(level: str | None = None, json: bool | None = None) -> None:
    """Configure stdlib logging and structlog.

    Args:
        level: Log level name, defaults to settings.log_level.
        json: Render JSON lines instead of console output,
            defaults to settings.log_json.
    """
    level_name = (level or settings.log_level).upper()
    render_json = settings.log_json if json is None else json

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(message)s",
        stream=sys.stderr,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if render_json
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
