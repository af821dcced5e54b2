"""Centralized logging configuration.

LOG_FORMAT=json (the default) emits structured JSON records that log
aggregators can parse without regex. LOG_FORMAT=text gives a human-readable
format for local development.

The SensitiveDataFilter is always attached regardless of format.
"""

import logging
import sys
from typing import Optional

from pythonjsonlogger.jsonlogger import JsonFormatter

from jwkstore.core.config import settings
from jwkstore.core.logging_filters import SensitiveDataFilter

_TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _build_handler(log_format: str) -> logging.Handler:
    """Return a StreamHandler with the appropriate formatter."""
    handler = logging.StreamHandler(sys.stdout)

    if log_format == "json":
        formatter: logging.Formatter = JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
            rename_fields={"levelname": "level", "asctime": "timestamp"},
        )
    else:
        formatter = logging.Formatter(_TEXT_FORMAT)

    handler.setFormatter(formatter)
    return handler


def configure_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Configure the root logger with structured output and secrets redaction.

    Call once at process startup. Arguments default to the LOG_LEVEL and
    LOG_FORMAT settings; DEBUG=true switches the default format to text.
    """
    level = (log_level or settings.log_level).upper()
    fmt = log_format or ("text" if settings.debug else settings.log_format)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))

    # Remove any existing handlers to avoid duplicate output
    root.handlers.clear()

    handler = _build_handler(fmt.lower())
    handler.addFilter(SensitiveDataFilter())
    root.addHandler(handler)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("alembic").setLevel(logging.WARNING)
