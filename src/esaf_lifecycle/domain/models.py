"""
esaf_lifecycle.domain.models

Core domain schema for the spend-authorisation lifecycle.

Responsibilities:
- Define the wire-compatible models exchanged between services:
  - FinanceRequest: immutable once intake completes
  - PolicyDecision: derived value, superseded but never mutated
  - StatusRecord: canonical per-request status (single writer: the orchestrator)
  - ApproverInboxItem: one pending item per (role, requestId)
- Keep snake_case attributes in Python and camelCase names on the wire.
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


class SpendType(enum.StrEnum):
    goods = "goods"
    services = "services"
    consultancy = "consultancy"
    travel = "travel"
    grants = "grants"
    other = "other"


class ApproverRole(enum.StrEnum):
    manager = "manager"
    director = "director"


class ApprovalPath(enum.StrEnum):
    none = "none"
    manager_only = "manager_only"
    manager_and_director = "manager_and_director"


class DecisionState(enum.StrEnum):
    auto_rejected = "auto_rejected"
    needs_manager_approval = "needs_manager_approval"
    needs_manager_and_director_approval = "needs_manager_and_director_approval"


class LifecycleState(enum.StrEnum):
    # Canonical status values held by StatusRecord.current_state.
    submitted = "submitted"
    policy_validated = "policy_validated"
    awaiting_manager_approval = "awaiting_manager_approval"
    awaiting_director_approval = "awaiting_director_approval"
    approved = "approved"
    rejected = "rejected"
    auto_rejected = "auto_rejected"


TERMINAL_STATES = frozenset(
    {LifecycleState.approved, LifecycleState.rejected, LifecycleState.auto_rejected}
)


class DecisionOutcome(enum.StrEnum):
    approved = "approved"
    rejected = "rejected"
    more_info_requested = "more_info_requested"


class Audience(enum.StrEnum):
    requester = "requester"
    approver = "approver"


YesNo = Literal["Yes", "No"]


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Money(WireModel):
    model_config = ConfigDict(frozen=True)

    amount: Decimal = Field(ge=0)
    currency: str = Field(default="GBP", pattern=r"^[A-Z]{3}$")


_CURRENCY_SYMBOLS = {"GBP": "£", "EUR": "€", "USD": "$"}


def format_money(money: Money) -> str:
    symbol = _CURRENCY_SYMBOLS.get(money.currency)
    amount = f"{money.amount:,.2f}"
    return f"{symbol}{amount}" if symbol else f"{money.currency} {amount}"


class FinanceRequest(WireModel):
    """
    A completed ESAF request. Frozen: a fresh request supersedes it, nothing edits it.
    """

    model_config = ConfigDict(frozen=True)

    request_id: str | None = None
    directorate: str
    service_name: str
    cost_centre_code: str
    type_of_spend: SpendType
    amount_excl_vat: Money = Field(alias="amountExclVAT")

    # Risk flags.
    ring_fenced_funding: YesNo
    is_business_critical: YesNo
    is_statutory: YesNo
    can_be_deferred: YesNo
    has_contract_in_place: YesNo

    description_of_spend: str
    justification: str

    # Sign-offs.
    head_of_finance: str
    executive_team_or_delegate: str


class FinanceRequestDraft(WireModel):
    # What intake has collected so far; every field may still be missing.
    directorate: str | None = None
    service_name: str | None = None
    cost_centre_code: str | None = None
    type_of_spend: SpendType | None = None
    amount_excl_vat: Money | None = Field(default=None, alias="amountExclVAT")
    ring_fenced_funding: YesNo | None = None
    is_business_critical: YesNo | None = None
    is_statutory: YesNo | None = None
    can_be_deferred: YesNo | None = None
    has_contract_in_place: YesNo | None = None
    description_of_spend: str | None = None
    justification: str | None = None
    head_of_finance: str | None = None
    executive_team_or_delegate: str | None = None


class InboxFinanceSnapshot(WireModel):
    # The slice of a FinanceRequest an approver sees in their inbox.
    model_config = ConfigDict(frozen=True)

    directorate: str | None = None
    service_name: str | None = None
    amount_excl_vat: Money | None = Field(default=None, alias="amountExclVAT")
    description_of_spend: str | None = None

    @classmethod
    def from_request(cls, request: FinanceRequest) -> InboxFinanceSnapshot:
        return cls(
            directorate=request.directorate,
            service_name=request.service_name,
            amount_excl_vat=request.amount_excl_vat,
            description_of_spend=request.description_of_spend,
        )


class PolicyReason(WireModel):
    model_config = ConfigDict(frozen=True)

    code: str
    message: str


class PolicyDecision(WireModel):
    model_config = ConfigDict(frozen=True)

    decision_state: DecisionState
    required_approval_path: ApprovalPath
    reasons: tuple[PolicyReason, ...] = ()


class StatusHistoryEntry(WireModel):
    model_config = ConfigDict(frozen=True)

    state: LifecycleState
    updated_at: datetime
    updated_by: str
    note: str


class StatusRecord(WireModel):
    """
    Canonical status for one request.

    `current_state` always equals the state of the last history entry; use
    `transition` or `note` rather than assigning fields directly.
    """

    request_id: str = Field(frozen=True)
    current_state: LifecycleState
    updated_at: datetime
    updated_by: str
    policy_decision: PolicyDecision | None = None
    history: list[StatusHistoryEntry] = Field(default_factory=list)
    summary_for_requester: str | None = None
    summary_for_approver: str | None = None
    notified_approver_roles: list[ApproverRole] = Field(default_factory=list)

    @classmethod
    def open(cls, request_id: str, *, by: str, note: str) -> StatusRecord:
        now = utcnow()
        entry = StatusHistoryEntry(
            state=LifecycleState.submitted, updated_at=now, updated_by=by, note=note
        )
        return cls(
            request_id=request_id,
            current_state=LifecycleState.submitted,
            updated_at=now,
            updated_by=by,
            history=[entry],
        )

    def transition(self, state: LifecycleState, *, by: str, note: str) -> None:
        now = utcnow()
        self.history.append(
            StatusHistoryEntry(state=state, updated_at=now, updated_by=by, note=note)
        )
        self.current_state = state
        self.updated_at = now
        self.updated_by = by

    def note(self, *, by: str, note: str) -> None:
        # History gains an entry; the state does not move.
        self.transition(self.current_state, by=by, note=note)

    @property
    def is_terminal(self) -> bool:
        return self.current_state in TERMINAL_STATES

    def has_notified(self, role: ApproverRole) -> bool:
        return role in self.notified_approver_roles

    def mark_notified(self, role: ApproverRole) -> None:
        # Roles are only ever added.
        if role not in self.notified_approver_roles:
            self.notified_approver_roles.append(role)

    def snapshot(self) -> StatusRecord:
        return self.model_copy(deep=True)


class ApproverInboxItem(WireModel):
    request_id: str
    approver_role: ApproverRole
    created_at: datetime
    summary_for_approver: str
    finance_request: InboxFinanceSnapshot | None = None
    policy_decision: PolicyDecision | None = None
    status_snapshot: StatusRecord


# --- Module Notes -----------------------------------------------------------
# Cross-service copies (inbox status snapshots, orchestrator request snapshots) are
# always taken with `model_copy(deep=True)` or rebuilt from the wire, never shared.
