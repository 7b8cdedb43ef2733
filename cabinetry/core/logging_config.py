# cabinetry/core/logging_config.py
import logging
import os
import sys

import structlog


def _level_from_env() -> int:
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "info").upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(level: int | None = None) -> None:
    """
    JSON lines on stdout through stdlib logging, so gunicorn, uvicorn and
    celery output end up in the same stream. Context bound with
    ``structlog.contextvars`` (request id, path) is merged into every event.
    """
    level = level if level is not None else _level_from_env()
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger("uvicorn.access").setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger("cabinetry")
