"""
esaf_lifecycle.services.inbox

Approver inbox service (one FIFO queue per approver role).

Responsibilities:
- Keep at most one pending item per (role, requestId).
- List a role's pending items with a human-readable summary.
- Forward approver decisions to the orchestrator and apply the outcome to the
  queue only once the orchestrator has accepted it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import pydantic

from esaf_lifecycle.domain.models import (
    ApproverInboxItem,
    ApproverRole,
    DecisionOutcome,
    StatusRecord,
    format_money,
    utcnow,
)
from esaf_lifecycle.errors import DownstreamError, NotFoundError, ProtocolError, ValidationError
from esaf_lifecycle.observability.logging import get_logger
from esaf_lifecycle.protocol.client import MessageSender
from esaf_lifecycle.protocol.envelope import (
    ApproverDecision,
    ListPending,
    NotifyApprovalRequired,
    SubmitDecision,
)
from esaf_lifecycle.services.locks import KeyedLocks

log = get_logger(__name__)

_SUMMARY_MAX_CHARS = 120


@dataclass(frozen=True, slots=True)
class DecisionReceipt:
    status: StatusRecord
    confirmation: str
    remaining: int


class ApprovalInboxStore:
    name = "approver"
    description = "Per-role approval inbox for ESAF requests awaiting a decision."
    intents = ("notify_approval_required", "list_pending", "submit_decision")

    def __init__(self, *, status: MessageSender) -> None:
        self._status = status
        self._queues: dict[ApproverRole, list[ApproverInboxItem]] = {}
        self._locks = KeyedLocks()

    async def handle(self, envelope: Any) -> dict[str, Any]:
        if isinstance(envelope, NotifyApprovalRequired):
            size = self.upsert(envelope.role, _item_from_notification(envelope))
            return {
                "acknowledged": True,
                "queueSize": size,
                "message": f"Queued {envelope.request_id} for {envelope.role.value} approval.",
            }
        if isinstance(envelope, ListPending):
            items = self.list(envelope.role)
            return {
                "items": [item.to_wire() for item in items],
                "summaryText": pending_summary(envelope.role, items),
            }
        if isinstance(envelope, SubmitDecision):
            receipt = await self.submit_decision(
                envelope.request_id, envelope.role, envelope.outcome, envelope.comment
            )
            return {
                "statusRecord": receipt.status.to_wire(),
                "confirmation": receipt.confirmation,
                "remaining": receipt.remaining,
            }
        raise ValidationError(
            f"Intent '{getattr(envelope, 'intent', None)}' is not served by the approver service."
        )

    def upsert(self, role: ApproverRole, item: ApproverInboxItem) -> int:
        queue = self._queues.setdefault(ApproverRole(role), [])
        copy = item.model_copy(deep=True)
        index = _index_of(queue, item.request_id)
        if index is None:
            queue.append(copy)
        else:
            queue[index] = copy
        log.info(
            "inbox_item_upserted",
            esaf_request_id=item.request_id,
            role=str(role),
            replaced=index is not None,
            queue_size=len(queue),
        )
        return len(queue)

    def list(self, role: ApproverRole) -> list[ApproverInboxItem]:
        return [item.model_copy(deep=True) for item in self._queues.get(ApproverRole(role), [])]

    def get(self, role: ApproverRole, request_id: str) -> ApproverInboxItem | None:
        queue = self._queues.get(ApproverRole(role), [])
        index = _index_of(queue, request_id)
        return queue[index].model_copy(deep=True) if index is not None else None

    async def submit_decision(
        self,
        request_id: str,
        role: ApproverRole,
        outcome: DecisionOutcome,
        comment: str | None = None,
    ) -> DecisionReceipt:
        """
        The queue is only touched after the orchestrator accepts the decision; any
        failure on the way leaves it exactly as it was and surfaces as DownstreamError.
        """

        role = ApproverRole(role)
        outcome = DecisionOutcome(outcome)
        async with self._locks.hold((role, request_id)):
            item = self.get(role, request_id)
            if item is None:
                raise NotFoundError(
                    f"No pending request {request_id} found in the {role.value} inbox.",
                    details={"requestId": request_id, "role": role.value},
                )

            envelope = ApproverDecision(
                request_id=request_id,
                role=role,
                outcome=outcome,
                comment=comment,
                status_record=item.status_snapshot,
            )
            try:
                result = await self._status.send(
                    envelope, text="Record this approver decision in the ESAF status record."
                )
                status = StatusRecord.model_validate(result.get("statusRecord"))
            except ProtocolError as e:
                log.warning(
                    "decision_forward_failed",
                    esaf_request_id=request_id,
                    role=role.value,
                    code=e.code,
                    error=e.message,
                )
                raise DownstreamError(
                    "Unable to forward the decision to the status service. Please try again.",
                    details={"cause": e.code, "reason": e.message, **e.details},
                ) from e
            except pydantic.ValidationError as e:
                raise DownstreamError(
                    "The status service returned an unexpected payload.",
                    details={"reason": str(e)},
                ) from e

            queue = self._queues.setdefault(role, [])
            index = _index_of(queue, request_id)
            if index is not None:
                if outcome is DecisionOutcome.more_info_requested:
                    queue[index] = queue[index].model_copy(update={"status_snapshot": status})
                else:
                    del queue[index]

            log.info(
                "inbox_decision_applied",
                esaf_request_id=request_id,
                role=role.value,
                outcome=outcome.value,
                remaining=len(queue),
            )
            return DecisionReceipt(
                status=status,
                confirmation=_confirmation(role, request_id, outcome),
                remaining=len(queue),
            )


def _index_of(queue: list[ApproverInboxItem], request_id: str) -> int | None:
    for index, item in enumerate(queue):
        if item.request_id == request_id:
            return index
    return None


def _item_from_notification(envelope: NotifyApprovalRequired) -> ApproverInboxItem:
    status = envelope.status_record
    summary = (
        envelope.summary_for_approver.strip()
        or status.summary_for_approver
        or f"Awaiting {envelope.role.value} approval for {envelope.request_id}."
    )
    return ApproverInboxItem(
        request_id=envelope.request_id,
        approver_role=envelope.role,
        created_at=utcnow(),
        summary_for_approver=summary,
        finance_request=envelope.finance_request,
        policy_decision=envelope.policy_decision or status.policy_decision,
        status_snapshot=status,
    )


def pending_summary(role: ApproverRole, items: list[ApproverInboxItem]) -> str:
    role_name = ApproverRole(role).value
    if not items:
        return f"You have no pending requests for {role_name} approval."

    lines = [f"You have {len(items)} pending request{'' if len(items) == 1 else 's'}:"]
    for number, item in enumerate(items, start=1):
        snapshot = item.finance_request
        service = (snapshot.service_name if snapshot else None) or "Unknown service"
        amount = (
            format_money(snapshot.amount_excl_vat)
            if snapshot and snapshot.amount_excl_vat
            else "Amount not provided"
        )
        lines.append(
            f"{number}. {item.request_id} - {service} - {amount} - "
            f"{_truncate(item.summary_for_approver)}"
        )
    return "\n".join(lines)


def _truncate(text: str, max_length: int = _SUMMARY_MAX_CHARS) -> str:
    if len(text) <= max_length:
        return text
    return f"{text[: max_length - 3]}..."


def _confirmation(role: ApproverRole, request_id: str, outcome: DecisionOutcome) -> str:
    if outcome is DecisionOutcome.approved:
        return f"Recorded {role.value} approval for {request_id}."
    if outcome is DecisionOutcome.rejected:
        return f"Recorded {role.value} rejection for {request_id}."
    return f"Recorded {role.value} request for more information on {request_id}."
