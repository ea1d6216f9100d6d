"""
esaf_lifecycle.errors

Error taxonomy shared by every service and the protocol client.

Responsibilities:
- Give each failure a machine-readable code and a human message.
- Rebuild the matching exception from a structured error payload received over the wire.
"""

from __future__ import annotations

from typing import Any

from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
)


class ProtocolError(Exception):
    code = "protocol_error"
    http_status = HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})

    def to_payload(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class ValidationError(ProtocolError):
    """Envelope is missing a field its intent requires, or names an unknown intent."""

    code = "validation_error"
    http_status = HTTP_400_BAD_REQUEST


class NotFoundError(ProtocolError):
    code = "not_found"
    http_status = HTTP_404_NOT_FOUND


class UnknownRequest(NotFoundError):
    code = "unknown_request"


class OutOfOrderDecision(ProtocolError):
    code = "out_of_order_decision"
    http_status = HTTP_409_CONFLICT


class DownstreamError(ProtocolError):
    code = "downstream_error"
    http_status = HTTP_502_BAD_GATEWAY


class SummaryGenerationError(ProtocolError):
    # Never surfaced to callers; the orchestrator falls back to a template.
    code = "summary_generation_error"


_BY_CODE: dict[str, type[ProtocolError]] = {
    cls.code: cls
    for cls in (
        ValidationError,
        NotFoundError,
        UnknownRequest,
        OutOfOrderDecision,
        DownstreamError,
        SummaryGenerationError,
    )
}


def error_from_payload(payload: dict[str, Any]) -> ProtocolError:
    code = str(payload.get("code", ""))
    message = str(payload.get("message", "")) or code or "unknown error"
    details = payload.get("details")
    cls = _BY_CODE.get(code, ProtocolError)
    return cls(message, details=details if isinstance(details, dict) else None)
