"""
esaf_lifecycle.services.summaries

Narrative summaries for the two audiences (requester, approver).

Responsibilities:
- Define the generator boundary the orchestrator depends on.
- Provide a deterministic template generator and an HTTP-backed narrative generator.
- Provide the fallback used when a generator fails.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import httpx
from pydantic import Field

from esaf_lifecycle.domain.models import (
    FinanceRequest,
    LifecycleState,
    PolicyDecision,
    StatusRecord,
    WireModel,
    format_money,
)
from esaf_lifecycle.errors import SummaryGenerationError


class Summaries(WireModel):
    summary_for_requester: str = Field(min_length=1)
    summary_for_approver: str = Field(min_length=1)


@dataclass(frozen=True, slots=True)
class SummaryContext:
    status: StatusRecord
    finance_request: FinanceRequest | None = None
    policy_decision: PolicyDecision | None = None

    @property
    def amount_label(self) -> str:
        if self.finance_request is None:
            return "amount not provided"
        return format_money(self.finance_request.amount_excl_vat)


class SummaryGenerator(Protocol):
    async def generate(self, context: SummaryContext) -> Summaries: ...


_STATE_PHRASES: dict[LifecycleState, str] = {
    LifecycleState.submitted: "has been submitted",
    LifecycleState.policy_validated: "has passed policy checks",
    LifecycleState.awaiting_manager_approval: "is awaiting manager approval",
    LifecycleState.awaiting_director_approval: (
        "has been approved by a manager and is awaiting director approval"
    ),
    LifecycleState.approved: "has been approved",
    LifecycleState.rejected: "has been rejected",
    LifecycleState.auto_rejected: "was automatically rejected by finance policy",
}


def fallback_summaries(context: SummaryContext) -> Summaries:
    """Built only from requestId, currentState and amount."""

    status = context.status
    state = status.current_state.value
    return Summaries(
        summary_for_requester=(
            f"Request {status.request_id} ({context.amount_label}) is currently {state}."
        ),
        summary_for_approver=(
            f"{status.request_id}: {context.amount_label}; current state {state}."
        ),
    )


class TemplateSummaryGenerator:
    async def generate(self, context: SummaryContext) -> Summaries:
        status = context.status
        request = context.finance_request
        phrase = _STATE_PHRASES.get(status.current_state, f"is {status.current_state.value}")
        latest_note = status.history[-1].note if status.history else ""

        service = request.service_name if request else "an unnamed service"
        requester = f"Your request {status.request_id} for {service} ({context.amount_label}) {phrase}."
        if latest_note:
            requester += f" Latest update: {latest_note}"

        decision = context.policy_decision or status.policy_decision
        parts = [f"{status.request_id}"]
        if request is not None:
            parts.append(f"{request.directorate} / {request.service_name}")
            parts.append(f"{context.amount_label} ({request.type_of_spend.value})")
        else:
            parts.append(context.amount_label)
        approver = " - ".join(parts) + f". Status: {phrase}."
        if decision is not None:
            approver += f" Approval path: {decision.required_approval_path.value}."
        if request is not None:
            approver += f" Purpose: {request.description_of_spend}"

        return Summaries(summary_for_requester=requester, summary_for_approver=approver)


class HttpSummaryGenerator:
    """
    Calls an external narrative service that answers with
    `{"summaryForRequester": str, "summaryForApprover": str}`.
    """

    def __init__(self, *, http: httpx.AsyncClient, url: str) -> None:
        self._http = http
        self._url = url

    async def generate(self, context: SummaryContext) -> Summaries:
        payload = {
            "financeRequest": context.finance_request.to_wire() if context.finance_request else None,
            "policyDecision": context.policy_decision.to_wire() if context.policy_decision else None,
            "status": context.status.to_wire(),
        }
        try:
            r = await self._http.post(self._url, json=payload)
            r.raise_for_status()
            return Summaries.model_validate(r.json())
        except (httpx.HTTPError, ValueError) as e:
            raise SummaryGenerationError(
                "Narrative service failed or returned a malformed payload.",
                details={"reason": str(e)},
            ) from e


# --- Module Notes -----------------------------------------------------------
# `ValueError` covers both undecodable JSON and pydantic validation failures.
