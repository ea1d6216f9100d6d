"""
esaf_lifecycle.protocol.envelope

Correlation envelope carried as metadata on every cross-service send.

Responsibilities:
- Define one model per intent, each enumerating exactly the fields it requires.
- Parse raw metadata into the closed union, rejecting unknown intents and missing
  fields with `ValidationError` before any handler runs.
- Define the generic send request/response bodies.
"""

from __future__ import annotations

import uuid
from typing import Annotated, Any, Literal, Union

import pydantic
from pydantic import ConfigDict, Field, TypeAdapter

from esaf_lifecycle.domain.models import (
    ApproverRole,
    Audience,
    DecisionOutcome,
    FinanceRequest,
    FinanceRequestDraft,
    InboxFinanceSnapshot,
    PolicyDecision,
    StatusRecord,
    WireModel,
)
from esaf_lifecycle.errors import ValidationError

ENVELOPE_KEY = "envelope"


class _Envelope(WireModel):
    model_config = ConfigDict(extra="ignore")


class NotifyApprovalRequired(_Envelope):
    intent: Literal["notify_approval_required"] = "notify_approval_required"
    request_id: str = Field(min_length=1)
    role: ApproverRole
    summary_for_approver: str
    status_record: StatusRecord
    finance_request: InboxFinanceSnapshot | None = None
    policy_decision: PolicyDecision | None = None


class ListPending(_Envelope):
    intent: Literal["list_pending"] = "list_pending"
    role: ApproverRole


class SubmitDecision(_Envelope):
    intent: Literal["submit_decision"] = "submit_decision"
    request_id: str = Field(min_length=1)
    role: ApproverRole
    outcome: DecisionOutcome
    comment: str | None = None


class ApproverDecision(_Envelope):
    intent: Literal["approver_decision"] = "approver_decision"
    request_id: str = Field(min_length=1)
    role: ApproverRole
    outcome: DecisionOutcome
    comment: str | None = None
    status_record: StatusRecord | None = None


class PolicyResult(_Envelope):
    # `policy_decided` is accepted as an alias of `policy_result`.
    intent: Literal["policy_result", "policy_decided"] = "policy_result"
    request_id: str = Field(min_length=1)
    finance_request: FinanceRequest
    policy_decision: PolicyDecision


class StatusQuery(_Envelope):
    intent: Literal["status_query"] = "status_query"
    request_id: str = Field(min_length=1)
    audience: Audience


class EvaluatePolicy(_Envelope):
    intent: Literal["evaluate_policy"] = "evaluate_policy"
    finance_request: FinanceRequest


class SubmitRequest(_Envelope):
    intent: Literal["submit_request"] = "submit_request"
    finance_request: FinanceRequestDraft


Envelope = Annotated[
    Union[
        NotifyApprovalRequired,
        ListPending,
        SubmitDecision,
        ApproverDecision,
        PolicyResult,
        StatusQuery,
        EvaluatePolicy,
        SubmitRequest,
    ],
    Field(discriminator="intent"),
]

_ADAPTER: TypeAdapter[Any] = TypeAdapter(Envelope)


def parse_envelope(raw: Any) -> Any:
    try:
        return _ADAPTER.validate_python(raw)
    except pydantic.ValidationError as e:
        errors = [
            {"loc": [str(p) for p in err["loc"]], "msg": err["msg"], "type": err["type"]}
            for err in e.errors()
        ]
        intent = raw.get("intent") if isinstance(raw, dict) else None
        raise ValidationError(
            f"Invalid envelope for intent '{intent}'." if intent else "Envelope has no intent.",
            details={"errors": errors},
        ) from e


def envelope_from_metadata(metadata: dict[str, Any] | None) -> Any:
    raw = (metadata or {}).get(ENVELOPE_KEY)
    if not isinstance(raw, dict):
        raise ValidationError(f"metadata.{ENVELOPE_KEY} is required.")
    return parse_envelope(raw)


def request_id_of(envelope: Any) -> str | None:
    # Correlation key used for logging and per-key serialisation.
    return getattr(envelope, "request_id", None)


class SendRequest(WireModel):
    message_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    text: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def wrap(cls, envelope: _Envelope, *, text: str = "") -> SendRequest:
        return cls(text=text, metadata={ENVELOPE_KEY: envelope.to_wire()})


class SendResponse(WireModel):
    ok: bool
    result: dict[str, Any] | None = None
    error: dict[str, Any] | None = None


class CapabilityDescriptor(WireModel):
    name: str
    description: str
    version: str
    url: str
    intents: list[str] = Field(default_factory=list)


# --- Module Notes -----------------------------------------------------------
# Adding an intent means adding a model here and a branch in the owning service's
# `handle`; anything else is rejected as `validation_error`.
