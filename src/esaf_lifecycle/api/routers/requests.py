from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from esaf_lifecycle.api.deps import intake_client, status_client
from esaf_lifecycle.domain.models import Audience, FinanceRequestDraft
from esaf_lifecycle.protocol.client import ServiceClient
from esaf_lifecycle.protocol.envelope import StatusQuery, SubmitRequest

router = APIRouter(prefix="/v1/requests", tags=["requests"])


@router.post("")
async def submit_request(
    body: FinanceRequestDraft,
    intake: ServiceClient = Depends(intake_client),
) -> dict[str, Any]:
    # Incomplete drafts come back 200 with `complete: false` and the next question.
    return await intake.send(SubmitRequest(finance_request=body), text="Submit ESAF request.")


@router.get("/{request_id}/status")
async def get_status(
    request_id: str,
    audience: Audience = Query(default=Audience.requester),
    status: ServiceClient = Depends(status_client),
) -> dict[str, Any]:
    return await status.send(
        StatusQuery(request_id=request_id, audience=audience), text=f"status {request_id}"
    )
