"""
Logging setup.

All output goes through the standard logging module with structlog
processors in front, so application events and third-party records
(uvicorn, SQLAlchemy) share one format. Every event carries the service
name and environment; request-scoped values bound with
structlog.contextvars (request_id) are merged in.
"""

import logging
import sys
from typing import Optional, TextIO

import structlog
from structlog.processors import JSONRenderer, TimeStamper
from structlog.stdlib import ProcessorFormatter, add_log_level

from sf_performance.config.settings import get_settings

# Third-party loggers that take over the root handler
ROUTED_LOGGERS = ["uvicorn", "uvicorn.error", "uvicorn.access"]

# Too chatty below WARNING unless explicitly debugging SQL
QUIET_LOGGERS = ["sqlalchemy.engine", "multipart", "python_multipart"]


def _service_fields(app_name: str, environment: str):
    def processor(logger, method_name, event_dict):
        event_dict.setdefault("service", app_name)
        event_dict.setdefault("env", environment)
        return event_dict

    return processor


def configure_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Configure structlog and the root logger.

    Args:
        log_level: Overrides LOG_LEVEL (DEBUG, INFO, WARNING, ERROR)
        log_format: Overrides LOG_FORMAT ("json" or "text")
        stream: Where log lines are written (stdout by default)
    """
    settings = get_settings()
    stream = stream or sys.stdout
    level_name = (log_level or settings.monitoring.log_level).upper()
    level = getattr(logging, level_name, logging.INFO)
    fmt = log_format or settings.monitoring.log_format

    pre_chain = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        add_log_level,
        _service_fields(settings.app_name, settings.app_env),
        TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=pre_chain + [ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer = JSONRenderer() if fmt == "json" else structlog.dev.ConsoleRenderer(colors=stream.isatty())

    handler = logging.StreamHandler(stream)
    handler.setLevel(level)
    handler.setFormatter(ProcessorFormatter(processor=renderer, foreign_pre_chain=pre_chain))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    for name in ROUTED_LOGGERS:
        routed = logging.getLogger(name)
        routed.handlers = [handler]
        routed.propagate = False
        routed.setLevel(level)

    sql_level = logging.INFO if settings.database.echo else logging.WARNING
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, sql_level))

    structlog.get_logger(__name__).info("Logging configured", level=level_name, format=fmt)
