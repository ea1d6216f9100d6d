"""
esaf_lifecycle.services.dispatcher

"Approval required" fan-out from the orchestrator to the approver inbox.

Responsibilities:
- Send at most one successful notification per (request, role).
- Record delivered roles on the status record's notified set.
- Report failures without raising; the caller's state transition stands.
"""

from __future__ import annotations

from esaf_lifecycle.domain.models import (
    ApproverRole,
    InboxFinanceSnapshot,
    PolicyDecision,
    StatusRecord,
)
from esaf_lifecycle.errors import ProtocolError
from esaf_lifecycle.observability.logging import get_logger
from esaf_lifecycle.protocol.client import MessageSender
from esaf_lifecycle.protocol.envelope import NotifyApprovalRequired

log = get_logger(__name__)


class NotificationDispatcher:
    def __init__(self, *, inbox: MessageSender) -> None:
        self._inbox = inbox

    async def notify(
        self,
        record: StatusRecord,
        role: ApproverRole,
        summary_for_approver: str,
        finance_request: InboxFinanceSnapshot | None,
        policy_decision: PolicyDecision | None,
    ) -> bool:
        """
        Returns True only when this call delivered the notification.

        `record` is the orchestrator's working copy; on success `role` is added to its
        notified set and the orchestrator saves it. A failed delivery leaves the set
        untouched so a later policy result can try again.
        """

        if record.has_notified(role):
            log.info("notification_skipped", esaf_request_id=record.request_id, role=role.value)
            return False

        envelope = NotifyApprovalRequired(
            request_id=record.request_id,
            role=role,
            summary_for_approver=summary_for_approver,
            status_record=record.snapshot(),
            finance_request=finance_request,
            policy_decision=policy_decision,
        )
        try:
            await self._inbox.send(
                envelope, text=f"Approval required from {role.value} for {record.request_id}."
            )
        except ProtocolError as e:
            log.warning(
                "notification_failed",
                esaf_request_id=record.request_id,
                role=role.value,
                code=e.code,
                error=e.message,
            )
            return False

        record.mark_notified(role)
        log.info("approver_notified", esaf_request_id=record.request_id, role=role.value)
        return True
