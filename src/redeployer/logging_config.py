"""Structured logging for the API process and its deployment tasks."""

import logging
import sys

import structlog
from structlog.types import Processor

from redeployer.config import Settings

# Loggers replaced by our own events (http_request is logged by the middleware)
_QUIETED_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "aiosqlite": logging.WARNING,
}


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer(sort_keys=False)
    return structlog.dev.ConsoleRenderer(
        colors=sys.stdout.isatty(),
        exception_formatter=structlog.dev.plain_traceback,
    )


def setup_logging(settings: Settings) -> None:
    """Configure structlog and the stdlib root logger from `settings`.

    Every event carries the configured service name; deployment tasks inherit
    request context (correlation id) through structlog contextvars.
    """
    level = logging.getLevelName(settings.log_level)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)
    for name, quiet_level in _QUIETED_LOGGERS.items():
        logging.getLogger(name).setLevel(max(level, quiet_level))

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.CallsiteParameterAdder(
            {
                structlog.processors.CallsiteParameter.MODULE,
                structlog.processors.CallsiteParameter.FUNC_NAME,
            }
        ),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _renderer(settings.log_format),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=settings.service_name)

    structlog.get_logger().info(
        "logging_initialized",
        log_format=settings.log_format,
        log_level=settings.log_level,
        repo_dir=str(settings.services_repo_dir),
        live_dir=str(settings.services_live_dir),
    )
