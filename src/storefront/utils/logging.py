"""Logging configuration for the storefront.

structlog renders over the standard library handlers so that uvicorn,
protean and our own loggers share the same sinks. The level follows the
configured environment unless ``STOREFRONT_LOG_LEVEL`` is set.
"""

import logging
import logging.handlers
import sys
from pathlib import Path

import structlog

from storefront.utils.settings import get_settings

_LEVEL_BY_ENV = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}


def _handlers(log_dir: Path, level: str) -> list[logging.Handler]:
    log_dir.mkdir(exist_ok=True)

    console = logging.StreamHandler(sys.stdout)
    combined = logging.handlers.RotatingFileHandler(
        filename=log_dir / "storefront.log",
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    # Reconciliation failures are kept apart for audit.
    errors = logging.handlers.RotatingFileHandler(
        filename=log_dir / "storefront_error.log",
        maxBytes=10 * 1024 * 1024,
        backupCount=10,
        encoding="utf-8",
    )
    errors.setLevel(logging.ERROR)

    for handler in (console, combined):
        handler.setLevel(level)
    return [console, combined, errors]


def configure_logging(log_dir: str | Path = "logs") -> None:
    """Configure stdlib handlers and structlog processors for the app or CLI."""
    settings = get_settings()
    environment = settings.environment.lower()
    level = (settings.log_level or _LEVEL_BY_ENV.get(environment, "INFO")).upper()

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = _handlers(Path(log_dir), level)
    for noisy in ("urllib3", "stripe", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    renderer = (
        structlog.processors.JSONRenderer()
        if environment in ("production", "staging")
        else structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            ),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
