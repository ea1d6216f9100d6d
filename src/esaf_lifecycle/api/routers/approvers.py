"""
esaf_lifecycle.api.routers.approvers

Approver-facing endpoints.

Responsibilities:
- List the pending queue for a role.
- Record a decision on a pending item (the inbox forwards it to the orchestrator).
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import Field

from esaf_lifecycle.api.deps import approver_client
from esaf_lifecycle.domain.models import ApproverRole, DecisionOutcome, WireModel
from esaf_lifecycle.protocol.client import ServiceClient
from esaf_lifecycle.protocol.envelope import ListPending, SubmitDecision

router = APIRouter(prefix="/v1/approvers", tags=["approvers"])


class DecisionBody(WireModel):
    request_id: str = Field(min_length=1)
    outcome: DecisionOutcome
    comment: str | None = None


@router.get("/{role}/pending")
async def list_pending(
    role: ApproverRole,
    inbox: ServiceClient = Depends(approver_client),
) -> dict[str, Any]:
    return await inbox.send(ListPending(role=role), text=f"pending {role.value}")


@router.post("/{role}/decisions")
async def submit_decision(
    role: ApproverRole,
    body: DecisionBody,
    inbox: ServiceClient = Depends(approver_client),
) -> dict[str, Any]:
    envelope = SubmitDecision(
        request_id=body.request_id, role=role, outcome=body.outcome, comment=body.comment
    )
    return await inbox.send(
        envelope, text=f"{body.outcome.value} {body.request_id} as {role.value}"
    )


# --- Module Notes -----------------------------------------------------------
# Protocol errors raised by the client propagate to the app-level handler, which maps
# them to 400/404/409/502.
