"""
structlog wiring for the review service.
Every event carries the service name; JSON lines unless DEBUG is set.
"""

import logging
import sys
from typing import Optional

import structlog

from shield_review.config import settings

# Third-party loggers that only log per request/connection
NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore")


def add_service_name(logger, method_name, event_dict):
    event_dict.setdefault("service", settings.APP_NAME)
    return event_dict


def setup_logging(level: Optional[str] = None) -> None:
    """Route structlog and stdlib logging through one stdout handler."""
    pre_chain = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if settings.DEBUG:
        renderer = structlog.dev.ConsoleRenderer()
        exc_processors = []
    else:
        renderer = structlog.processors.JSONRenderer()
        # Tracebacks become a string field instead of a multi-line dump
        exc_processors = [structlog.processors.format_exc_info]

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *exc_processors,
            renderer,
        ],
    ))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    level_name = (level or settings.LOG_LEVEL).upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
