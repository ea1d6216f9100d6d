"""
esaf_lifecycle.observability.logging

Structured logging configuration for the services.

Responsibilities:
- Configure `structlog` for JSON logs.
- Provide bound loggers and a scoped binding for per-message correlation fields.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog


def configure_logging(*, service_name: str, level: str) -> None:
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _add_service_name(service_name),
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _add_service_name(service_name: str):
    def processor(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict

    return processor


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


@contextmanager
def message_context(
    *, destination: str, intent: str | None, request_id: str | None
) -> Iterator[None]:
    # Restores the previous values on exit; loopback calls nest inside the caller's request.
    with structlog.contextvars.bound_contextvars(
        destination=destination, intent=intent, esaf_request_id=request_id
    ):
        yield


# --- Module Notes -----------------------------------------------------------
# `esaf_request_id` is the business correlation key; `request_id` (middleware) is
# the per-HTTP-request trace id.
