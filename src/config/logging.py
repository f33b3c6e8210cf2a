"""
Logging Configuration for the Product Catalog API

Structured logging through structlog, rendered by the stdlib logging handlers
so uvicorn and SQLAlchemy records share the same output format.
"""

import logging
import sys
from typing import Optional

import structlog
from structlog.processors import JSONRenderer, TimeStamper
from structlog.stdlib import add_log_level, ProcessorFormatter

from src.config.settings import Settings, get_settings


def add_service_context(settings: Settings):
    """
    Processor stamping every event with the service identity.

    Values already bound on the event win, so a caller can still override
    `environment` for a single log line.
    """
    context = {
        "service": settings.app_name,
        "environment": settings.app_env,
        "version": settings.version,
    }

    def processor(logger, method_name, event_dict):
        for key, value in context.items():
            event_dict.setdefault(key, value)
        return event_dict

    return processor


def configure_logging(log_level: Optional[str] = None, settings: Optional[Settings] = None) -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Override log level (DEBUG, INFO, WARNING, ERROR)
        settings: Settings to read format and levels from, defaults to the cached ones
    """
    settings = settings or get_settings()
    level = log_level or settings.monitoring.log_level

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        add_log_level,
        add_service_context(settings),
        TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if settings.monitoring.log_format == "json":
        renderer = JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    formatter = ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    for logger_name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        logger = logging.getLogger(logger_name)
        logger.handlers = []
        logger.addHandler(console_handler)
        logger.setLevel(numeric_level)

    # SQL echo goes through the engine's own flag, keep the pool quiet otherwise
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.database.echo else logging.WARNING
    )
    for logger_name in ["asyncio", "aiosqlite", "redis"]:
        logging.getLogger(logger_name).setLevel(max(numeric_level, logging.WARNING))

    log = structlog.get_logger(__name__)
    log.info("Logging configured", level=level, format=settings.monitoring.log_format)
