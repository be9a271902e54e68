"""
Logging configuration for iVisit Emergency Backend.

structlog renders every record (JSON in production, console in debug) and the
stdlib root logger fans it out to stdout and the daily log files. The caller
identity of the current HTTP request is bound through contextvars so every
line emitted while serving it carries ``user_id``.
"""

import logging
import os
import sys
from datetime import datetime

import structlog
from structlog.stdlib import LoggerFactory

from core.config import settings

LOGS_DIR = "logs"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _file_handler(prefix: str, level: int) -> logging.FileHandler:
    path = os.path.join(LOGS_DIR, f"{prefix}_{datetime.now().strftime('%Y%m%d')}.log")
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.setLevel(level)
    return handler


def _init_sentry(logger) -> None:
    dsn = (settings.SENTRY_DSN or "").strip()
    if not dsn or dsn.startswith("your-sentry"):
        return

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=dsn,
        environment=settings.SENTRY_ENVIRONMENT,
        integrations=[FastApiIntegration(), SqlalchemyIntegration()],
        traces_sample_rate=0.1 if settings.ENV == "production" else 1.0,
    )
    logger.info("Sentry integration enabled", environment=settings.SENTRY_ENVIRONMENT)


def setup_logging() -> structlog.stdlib.BoundLogger:
    """Configure structlog, the stdlib handlers and (optionally) Sentry."""
    file_logging = settings.ENABLE_FILE_LOGGING
    if file_logging:
        os.makedirs(LOGS_DIR, exist_ok=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer() if settings.DEBUG else structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper()))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(console_handler)

    if file_logging:
        root_logger.addHandler(_file_handler("app", logging.INFO))
        root_logger.addHandler(_file_handler("error", logging.ERROR))

        # Request lines only go to their own file
        if settings.ENABLE_REQUEST_LOGGING:
            request_logger = logging.getLogger("requests")
            request_logger.setLevel(logging.INFO)
            request_logger.propagate = False
            request_logger.addHandler(_file_handler("requests", logging.INFO))

    logger = structlog.get_logger()
    _init_sentry(logger)
    return logger


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance."""
    return structlog.get_logger(name)


async def log_request_middleware(request, call_next):
    """Log each request and bind the caller identity for its duration."""
    logger = get_logger("requests")
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(user_id=request.headers.get("x-user-id"))

    logger.info(
        "Request started",
        method=request.method,
        url=str(request.url),
        client_ip=request.client.host if request.client else None,
    )

    response = await call_next(request)

    logger.info(
        "Request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
    )
    return response
