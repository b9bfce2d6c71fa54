"""Logging configuration for the application."""

import logging
import sys

from claimflow.core.config import get_settings
from claimflow.core.request_context import get_request_context

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s %(tenant_id)s] %(message)s"


class RequestContextFilter(logging.Filter):
    """Add ``request_id`` and ``tenant_id`` to each record ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in get_request_context().items():
            setattr(record, key, value or "-")
        return True


def setup_logging() -> None:
    """Configure stdout logging once per process; DEBUG when settings.debug."""
    settings = get_settings()
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=[handler],
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
