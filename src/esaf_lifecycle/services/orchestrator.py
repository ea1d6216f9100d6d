"""
esaf_lifecycle.services.orchestrator

Lifecycle orchestrator (canonical status owner).

Responsibilities:
- Create and advance the StatusRecord for each request from policy results and
  approver decisions.
- Enforce approval sequencing (manager before director, nothing after a terminal state).
- Drive the notification dispatcher for the next required approver role.
- Answer status queries for the requester and approver audiences.
"""

from __future__ import annotations

from typing import Any

from esaf_lifecycle.domain.models import (
    ApprovalPath,
    ApproverRole,
    Audience,
    DecisionOutcome,
    DecisionState,
    FinanceRequest,
    InboxFinanceSnapshot,
    LifecycleState,
    PolicyDecision,
    StatusRecord,
)
from esaf_lifecycle.errors import (
    NotFoundError,
    OutOfOrderDecision,
    SummaryGenerationError,
    UnknownRequest,
    ValidationError,
)
from esaf_lifecycle.observability.logging import get_logger
from esaf_lifecycle.protocol.envelope import ApproverDecision, PolicyResult, StatusQuery
from esaf_lifecycle.services.dispatcher import NotificationDispatcher
from esaf_lifecycle.services.locks import KeyedLocks
from esaf_lifecycle.services.status_store import StatusRecordStore, TrackedRequest
from esaf_lifecycle.services.summaries import (
    SummaryContext,
    SummaryGenerator,
    fallback_summaries,
)

log = get_logger(__name__)

# States from which a fresh policy result no longer moves the record.
_POLICY_SETTLED = frozenset(
    {
        LifecycleState.awaiting_manager_approval,
        LifecycleState.awaiting_director_approval,
        LifecycleState.approved,
        LifecycleState.rejected,
        LifecycleState.auto_rejected,
    }
)

# The single role whose decision each state is waiting for.
_EXPECTED_ROLE = {
    LifecycleState.awaiting_manager_approval: ApproverRole.manager,
    LifecycleState.awaiting_director_approval: ApproverRole.director,
}

# Roles that take part in each approval path.
_PATH_ROLES = {
    ApprovalPath.none: frozenset(),
    ApprovalPath.manager_only: frozenset({ApproverRole.manager}),
    ApprovalPath.manager_and_director: frozenset({ApproverRole.manager, ApproverRole.director}),
}


class LifecycleOrchestrator:
    name = "status"
    description = "Owns the canonical ESAF status record and answers status queries."
    intents = ("policy_result", "policy_decided", "approver_decision", "status_query")

    def __init__(
        self,
        *,
        store: StatusRecordStore,
        dispatcher: NotificationDispatcher,
        summaries: SummaryGenerator,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._summaries = summaries
        self._locks = KeyedLocks()

    async def handle(self, envelope: Any) -> dict[str, Any]:
        if isinstance(envelope, PolicyResult):
            record = await self.record_policy_result(
                envelope.request_id, envelope.finance_request, envelope.policy_decision
            )
            return {"statusRecord": record.to_wire()}
        if isinstance(envelope, ApproverDecision):
            record = await self.record_approver_decision(
                envelope.request_id, envelope.role, envelope.outcome, envelope.comment
            )
            return {"statusRecord": record.to_wire()}
        if isinstance(envelope, StatusQuery):
            return await self.query_status(envelope.request_id, envelope.audience)
        raise ValidationError(
            f"Intent '{getattr(envelope, 'intent', None)}' is not served by the status service."
        )

    async def record_policy_result(
        self, request_id: str, request: FinanceRequest, decision: PolicyDecision
    ) -> StatusRecord:
        async with self._locks.hold(request_id):
            tracked = self._store.get(request_id)
            if tracked is None:
                tracked = TrackedRequest(
                    status=StatusRecord.open(
                        request_id, by="policy", note="Request submitted for policy evaluation."
                    )
                )
            tracked.finance_request = request
            status = tracked.status

            self._apply_policy(status, decision)
            await self._refresh_summaries(tracked)
            # The transition is committed before dispatch and stays committed if dispatch fails.
            self._store.save(tracked)
            log.info(
                "policy_result_recorded",
                esaf_request_id=request_id,
                state=status.current_state.value,
                path=decision.required_approval_path.value,
            )

            if status.current_state is LifecycleState.awaiting_manager_approval:
                # Director is never notified at this stage, even on a two-step path.
                await self._dispatch(tracked, ApproverRole.manager)
            return status.snapshot()

    async def record_approver_decision(
        self,
        request_id: str,
        role: ApproverRole,
        outcome: DecisionOutcome,
        comment: str | None = None,
    ) -> StatusRecord:
        role = ApproverRole(role)
        outcome = DecisionOutcome(outcome)
        async with self._locks.hold(request_id):
            tracked = self._store.get(request_id)
            if tracked is None:
                raise UnknownRequest(
                    f"No status record exists for {request_id}.",
                    details={"requestId": request_id},
                )
            status = tracked.status
            if outcome is DecisionOutcome.more_info_requested:
                self._check_on_path(status, role)
            else:
                self._check_sequence(status, role)

            path = status.policy_decision.required_approval_path if status.policy_decision else None
            by = role.value
            next_role: ApproverRole | None = None

            if outcome is DecisionOutcome.more_info_requested:
                note = f"{role.value} requested more information"
                status.note(by=by, note=f"{note}: {comment}" if comment else f"{note}.")
            elif outcome is DecisionOutcome.rejected:
                status.transition(
                    LifecycleState.rejected, by=by, note=_decision_note(role, outcome, comment)
                )
            elif role is ApproverRole.manager and path is ApprovalPath.manager_and_director:
                status.transition(
                    LifecycleState.awaiting_director_approval,
                    by=by,
                    note=_decision_note(role, outcome, comment),
                )
                next_role = ApproverRole.director
            else:
                status.transition(
                    LifecycleState.approved, by=by, note=_decision_note(role, outcome, comment)
                )

            await self._refresh_summaries(tracked)
            self._store.save(tracked)
            log.info(
                "approver_decision_recorded",
                esaf_request_id=request_id,
                role=role.value,
                outcome=outcome.value,
                state=status.current_state.value,
            )

            if next_role is not None:
                await self._dispatch(tracked, next_role)
            return status.snapshot()

    async def query_status(self, request_id: str, audience: Audience) -> dict[str, Any]:
        audience = Audience(audience)
        async with self._locks.hold(request_id):
            tracked = self._store.get(request_id)
            if tracked is None:
                raise NotFoundError(
                    f"I could not find request {request_id}. Please check the reference ID.",
                    details={"requestId": request_id},
                )
            status = tracked.status
            if not status.summary_for_requester or not status.summary_for_approver:
                await self._refresh_summaries(tracked)
                self._store.save(tracked)

        summary = (
            status.summary_for_approver
            if audience is Audience.approver
            else status.summary_for_requester
        )
        return {
            "requestId": request_id,
            "audience": audience.value,
            "summary": summary,
            "statusRecord": status.to_wire(),
        }

    def _apply_policy(self, status: StatusRecord, decision: PolicyDecision) -> None:
        path = decision.required_approval_path
        if status.current_state in _POLICY_SETTLED:
            # Once approval has started the path in force is kept; the state never moves back.
            status.note(
                by="policy",
                note=f"Policy decision re-received ({path.value}); state unchanged.",
            )
            return

        reasons = "; ".join(r.message for r in decision.reasons)
        status.policy_decision = decision
        status.transition(
            LifecycleState.policy_validated,
            by="policy",
            note=f"Policy decision received: {reasons}" if reasons else "Policy decision received.",
        )
        if path is ApprovalPath.none:
            if decision.decision_state is DecisionState.auto_rejected:
                status.transition(
                    LifecycleState.auto_rejected, by="policy", note="Automatically rejected by policy."
                )
            return

        status.transition(
            LifecycleState.awaiting_manager_approval,
            by="policy",
            note="Awaiting manager approval.",
        )

    def _check_on_path(self, status: StatusRecord, role: ApproverRole) -> None:
        path = status.policy_decision.required_approval_path if status.policy_decision else None
        if path is None or role not in _PATH_ROLES[path]:
            raise OutOfOrderDecision(
                f"A {role.value} cannot ask for more information on {status.request_id}; "
                "the role is not on its approval path.",
                details={
                    "requestId": status.request_id,
                    "state": status.current_state.value,
                    "role": role.value,
                },
            )

    def _check_sequence(self, status: StatusRecord, role: ApproverRole) -> None:
        expected = _EXPECTED_ROLE.get(status.current_state)
        if expected is None:
            raise OutOfOrderDecision(
                f"Request {status.request_id} is {status.current_state.value}; "
                "no approver decision is pending.",
                details={"requestId": status.request_id, "state": status.current_state.value},
            )
        if role is not expected:
            raise OutOfOrderDecision(
                f"A {role.value} decision cannot be applied while {status.request_id} "
                f"is {status.current_state.value}.",
                details={
                    "requestId": status.request_id,
                    "state": status.current_state.value,
                    "role": role.value,
                    "expectedRole": expected.value,
                },
            )

    async def _refresh_summaries(self, tracked: TrackedRequest) -> None:
        status = tracked.status
        context = SummaryContext(
            status=status,
            finance_request=tracked.finance_request,
            policy_decision=status.policy_decision,
        )
        try:
            summaries = await self._summaries.generate(context)
        except SummaryGenerationError as e:
            log.warning(
                "summary_fallback_used", esaf_request_id=status.request_id, error=e.message
            )
            summaries = fallback_summaries(context)
        status.summary_for_requester = summaries.summary_for_requester
        status.summary_for_approver = summaries.summary_for_approver

    async def _dispatch(self, tracked: TrackedRequest, role: ApproverRole) -> None:
        status = tracked.status
        snapshot = (
            InboxFinanceSnapshot.from_request(tracked.finance_request)
            if tracked.finance_request is not None
            else None
        )
        delivered = await self._dispatcher.notify(
            status,
            role,
            status.summary_for_approver or "",
            snapshot,
            status.policy_decision,
        )
        if delivered:
            self._store.save(tracked)


def _decision_note(role: ApproverRole, outcome: DecisionOutcome, comment: str | None) -> str:
    note = f"Decision recorded by {role.value}: {outcome.value.upper()}."
    return f"{note} Comment: {comment}" if comment else note


# --- Module Notes -----------------------------------------------------------
# A notification that fails leaves the canonical state ahead of the approver inbox
# until a later policy result re-attempts it (the notified set is not updated).
