from __future__ import annotations

import pytest
from fakes import RecordingSender

from esaf_lifecycle.domain.models import (
    ApproverRole,
    DecisionOutcome,
    InboxFinanceSnapshot,
    LifecycleState,
    StatusRecord,
)
from esaf_lifecycle.errors import DownstreamError, NotFoundError, OutOfOrderDecision
from esaf_lifecycle.protocol.envelope import (
    ApproverDecision,
    ListPending,
    NotifyApprovalRequired,
    SubmitDecision,
)
from esaf_lifecycle.services.inbox import (
    ApprovalInboxStore,
    _item_from_notification,
    pending_summary,
)


def _record(request_id: str, state: LifecycleState) -> StatusRecord:
    record = StatusRecord.open(request_id, by="policy", note="submitted")
    record.transition(state, by="policy", note=state.value)
    return record


def _notification(
    make_request, request_id: str, summary: str = "Please review."
) -> NotifyApprovalRequired:
    return NotifyApprovalRequired(
        request_id=request_id,
        role=ApproverRole.manager,
        summary_for_approver=summary,
        status_record=_record(request_id, LifecycleState.awaiting_manager_approval),
        finance_request=InboxFinanceSnapshot.from_request(make_request(request_id=request_id)),
    )


def _status_replying(state: LifecycleState) -> RecordingSender:
    def reply(envelope: ApproverDecision) -> dict:
        return {"statusRecord": _record(envelope.request_id, state).to_wire()}

    return RecordingSender(result=reply)


@pytest.mark.asyncio
async def test_notification_for_same_request_replaces_item(make_request):
    inbox = ApprovalInboxStore(status=RecordingSender())

    await inbox.handle(_notification(make_request, "ESAF-2025-0001", "first"))
    result = await inbox.handle(_notification(make_request, "ESAF-2025-0001", "second"))

    assert result["queueSize"] == 1
    (item,) = inbox.list(ApproverRole.manager)
    assert item.summary_for_approver == "second"


@pytest.mark.asyncio
async def test_list_pending_is_fifo_with_summary_text(make_request):
    inbox = ApprovalInboxStore(status=RecordingSender())
    await inbox.handle(_notification(make_request, "ESAF-2025-0001"))
    await inbox.handle(_notification(make_request, "ESAF-2025-0002"))

    result = await inbox.handle(ListPending(role=ApproverRole.manager))

    assert [i["requestId"] for i in result["items"]] == ["ESAF-2025-0001", "ESAF-2025-0002"]
    assert result["summaryText"].splitlines() == [
        "You have 2 pending requests:",
        "1. ESAF-2025-0001 - Home Care - £10,000.00 - Please review.",
        "2. ESAF-2025-0002 - Home Care - £10,000.00 - Please review.",
    ]


@pytest.mark.asyncio
async def test_empty_queue_summary():
    inbox = ApprovalInboxStore(status=RecordingSender())

    result = await inbox.handle(ListPending(role=ApproverRole.director))

    assert result == {
        "items": [],
        "summaryText": "You have no pending requests for director approval.",
    }


def test_pending_summary_truncates_long_summaries(make_request):
    inbox = ApprovalInboxStore(status=RecordingSender())
    inbox.upsert(ApproverRole.manager, _item(make_request, "x" * 200))

    text = pending_summary(ApproverRole.manager, inbox.list(ApproverRole.manager))

    line = text.splitlines()[1]
    assert line.endswith("x" * 117 + "...")


def _item(make_request, summary: str):
    return _item_from_notification(_notification(make_request, "ESAF-2025-0001", summary))


@pytest.mark.asyncio
async def test_decision_for_missing_item_is_not_found():
    status = RecordingSender()
    inbox = ApprovalInboxStore(status=status)

    with pytest.raises(NotFoundError):
        await inbox.submit_decision("ESAF-2025-0009", ApproverRole.manager, DecisionOutcome.approved)
    assert status.sent == []


@pytest.mark.asyncio
async def test_approval_is_forwarded_then_item_removed(make_request):
    status = _status_replying(LifecycleState.approved)
    inbox = ApprovalInboxStore(status=status)
    await inbox.handle(_notification(make_request, "ESAF-2025-0001"))

    result = await inbox.handle(
        SubmitDecision(
            request_id="ESAF-2025-0001",
            role=ApproverRole.manager,
            outcome=DecisionOutcome.approved,
            comment="Fine",
        )
    )

    (forwarded,) = status.sent
    assert isinstance(forwarded, ApproverDecision)
    assert forwarded.comment == "Fine"
    assert forwarded.status_record.current_state is LifecycleState.awaiting_manager_approval
    assert result["statusRecord"]["currentState"] == "approved"
    assert result["remaining"] == 0
    assert result["confirmation"] == "Recorded manager approval for ESAF-2025-0001."
    assert inbox.list(ApproverRole.manager) == []


@pytest.mark.asyncio
async def test_more_info_keeps_item_and_refreshes_snapshot(make_request):
    status = _status_replying(LifecycleState.awaiting_manager_approval)
    inbox = ApprovalInboxStore(status=status)
    await inbox.handle(_notification(make_request, "ESAF-2025-0001"))

    receipt = await inbox.submit_decision(
        "ESAF-2025-0001", ApproverRole.manager, DecisionOutcome.more_info_requested, "Quotes?"
    )

    assert receipt.remaining == 1
    (item,) = inbox.list(ApproverRole.manager)
    assert item.status_snapshot == receipt.status


@pytest.mark.asyncio
async def test_failed_forward_leaves_queue_unchanged(make_request):
    status = RecordingSender()
    status.fail_with(OutOfOrderDecision("not now", details={"state": "approved"}))
    inbox = ApprovalInboxStore(status=status)
    await inbox.handle(_notification(make_request, "ESAF-2025-0001"))
    before = [item.model_dump() for item in inbox.list(ApproverRole.manager)]

    with pytest.raises(DownstreamError) as exc:
        await inbox.submit_decision("ESAF-2025-0001", ApproverRole.manager, DecisionOutcome.approved)

    assert exc.value.details["cause"] == "out_of_order_decision"
    assert exc.value.details["state"] == "approved"
    assert [item.model_dump() for item in inbox.list(ApproverRole.manager)] == before


@pytest.mark.asyncio
async def test_malformed_status_reply_is_downstream_error(make_request):
    inbox = ApprovalInboxStore(status=RecordingSender(result={"statusRecord": {"bogus": 1}}))
    await inbox.handle(_notification(make_request, "ESAF-2025-0001"))

    with pytest.raises(DownstreamError):
        await inbox.submit_decision("ESAF-2025-0001", ApproverRole.manager, DecisionOutcome.rejected)
    assert len(inbox.list(ApproverRole.manager)) == 1


def test_list_returns_copies(make_request):
    inbox = ApprovalInboxStore(status=RecordingSender())
    inbox.upsert(ApproverRole.manager, _item(make_request, "original"))

    inbox.list(ApproverRole.manager)[0].summary_for_approver = "changed"

    assert inbox.get(ApproverRole.manager, "ESAF-2025-0001").summary_for_approver == "original"
