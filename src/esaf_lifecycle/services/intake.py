"""
esaf_lifecycle.services.intake

Structured intake collector (the service behind the free-text front door).

Responsibilities:
- Report which required fields a draft request is still missing, with a follow-up question.
- Assign the `ESAF-<year>-<sequence>` reference once a draft is complete and freeze it.
- Run the completed request through policy evaluation and hand the result to the orchestrator.
- Relay status queries to the orchestrator.
"""

from __future__ import annotations

import itertools
from typing import Any

from esaf_lifecycle.domain.models import (
    FinanceRequest,
    FinanceRequestDraft,
    PolicyDecision,
    StatusRecord,
    utcnow,
)
from esaf_lifecycle.errors import ValidationError
from esaf_lifecycle.observability.logging import get_logger
from esaf_lifecycle.protocol.client import MessageSender
from esaf_lifecycle.protocol.envelope import (
    EvaluatePolicy,
    PolicyResult,
    StatusQuery,
    SubmitRequest,
)

log = get_logger(__name__)

# Attribute name -> follow-up question, in the order they are asked.
REQUIRED_FIELDS: dict[str, str] = {
    "directorate": "Which directorate is this spend for?",
    "service_name": "Which service within the directorate is requesting the spend?",
    "cost_centre_code": "What is the cost centre code?",
    "type_of_spend": (
        "What type of spend is this (goods, services, consultancy, travel, grants or other)?"
    ),
    "amount_excl_vat": "How much is the spend, excluding VAT?",
    "ring_fenced_funding": "Is this funded from a ring-fenced budget (Yes/No)?",
    "is_business_critical": "Is the spend business critical (Yes/No)?",
    "is_statutory": "Is the spend needed to meet a statutory duty (Yes/No)?",
    "can_be_deferred": "Could the spend be deferred (Yes/No)?",
    "has_contract_in_place": "Is there already a contract in place (Yes/No)?",
    "description_of_spend": "Please describe what the money will be spent on.",
    "justification": "Why is this spend essential now?",
    "head_of_finance": "Who is the Head of Finance signing this off?",
    "executive_team_or_delegate": "Which executive team member or delegate is signing this off?",
}


class RequestIdSequence:
    def __init__(self, *, prefix: str = "ESAF", start: int = 1) -> None:
        self._prefix = prefix
        self._counter = itertools.count(start)

    def next(self, *, year: int | None = None) -> str:
        year = year if year is not None else utcnow().year
        return f"{self._prefix}-{year}-{next(self._counter):04d}"


def missing_fields(draft: FinanceRequestDraft) -> list[str]:
    """Wire names of required fields that are absent or blank."""

    missing = []
    for attr in REQUIRED_FIELDS:
        value = getattr(draft, attr)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(FinanceRequestDraft.model_fields[attr].alias or attr)
    return missing


class IntakeCollector:
    name = "intake"
    description = "Collects structured ESAF requests and starts their approval lifecycle."
    intents = ("submit_request", "status_query")

    def __init__(
        self,
        *,
        policy: MessageSender,
        status: MessageSender,
        ids: RequestIdSequence,
    ) -> None:
        self._policy = policy
        self._status = status
        self._ids = ids
        self._completed: dict[str, FinanceRequest] = {}

    async def handle(self, envelope: Any) -> dict[str, Any]:
        if isinstance(envelope, SubmitRequest):
            return await self.submit(envelope.finance_request)
        if isinstance(envelope, StatusQuery):
            return await self._status.send(envelope, text=f"status {envelope.request_id}")
        raise ValidationError(
            f"Intent '{getattr(envelope, 'intent', None)}' is not served by the intake service."
        )

    def completed(self, request_id: str) -> FinanceRequest | None:
        return self._completed.get(request_id)

    async def submit(self, draft: FinanceRequestDraft) -> dict[str, Any]:
        missing = missing_fields(draft)
        if missing:
            first = _attr_for_wire_name(missing[0])
            return {
                "complete": False,
                "missingFields": missing,
                "question": REQUIRED_FIELDS[first],
            }

        request_id = self._ids.next()
        request = FinanceRequest(request_id=request_id, **draft.model_dump(exclude_none=True))
        self._completed[request_id] = request
        log.info("intake_completed", esaf_request_id=request_id)

        result = await self._policy.send(
            EvaluatePolicy(finance_request=request), text=f"Evaluate policy for {request_id}."
        )
        decision = PolicyDecision.model_validate(result.get("policyDecision"))

        recorded = await self._status.send(
            PolicyResult(request_id=request_id, finance_request=request, policy_decision=decision),
            text=f"Policy decision for {request_id}.",
        )
        status = StatusRecord.model_validate(recorded.get("statusRecord"))

        return {
            "complete": True,
            "requestId": request_id,
            "policyDecision": decision.to_wire(),
            "statusRecord": status.to_wire(),
            "summaryForRequester": status.summary_for_requester,
        }


def _attr_for_wire_name(wire_name: str) -> str:
    for attr, field in FinanceRequestDraft.model_fields.items():
        if (field.alias or attr) == wire_name:
            return attr
    return wire_name


# --- Module Notes -----------------------------------------------------------
# Turning free text into a draft is the front door's job; this collector only sees
# structured drafts, partial or complete.
