"""
esaf_lifecycle.domain.policy

Finance policy evaluation.

Responsibilities:
- Map a completed FinanceRequest to a PolicyDecision under a threshold configuration.
- Stay pure: no I/O, no clock, no mutation of inputs.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from esaf_lifecycle.domain.models import (
    ApprovalPath,
    DecisionState,
    FinanceRequest,
    PolicyDecision,
    PolicyReason,
    format_money,
)
from esaf_lifecycle.settings import Settings


@dataclass(frozen=True, slots=True)
class PolicyConfig:
    # Amounts are exclusive of VAT.
    manager_only_max: Decimal
    manager_and_director_min: Decimal
    disallowed_spend_types: frozenset[str]

    @classmethod
    def build(
        cls,
        *,
        manager_only_max: Decimal | int | str,
        manager_and_director_min: Decimal | int | str,
        disallowed_spend_types: Iterable[str] = (),
    ) -> PolicyConfig:
        return cls(
            manager_only_max=Decimal(str(manager_only_max)),
            manager_and_director_min=Decimal(str(manager_and_director_min)),
            disallowed_spend_types=frozenset(str(t) for t in disallowed_spend_types),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> PolicyConfig:
        return cls.build(
            manager_only_max=settings.manager_only_max,
            manager_and_director_min=settings.manager_and_director_min,
            disallowed_spend_types=settings.disallowed_spend_types,
        )


def evaluate(request: FinanceRequest, config: PolicyConfig) -> PolicyDecision:
    """
    Rules, in order:
    1. Disallowed spend type -> auto_rejected (amount is never consulted).
    2. amount <= manager_only_max -> manager only.
    3. amount >= manager_and_director_min -> manager and director.
    4. Anything in between falls back to manager only with reason `default_path`.
    """

    spend_type = str(request.type_of_spend)
    if spend_type in config.disallowed_spend_types:
        return PolicyDecision(
            decision_state=DecisionState.auto_rejected,
            required_approval_path=ApprovalPath.none,
            reasons=(
                PolicyReason(
                    code="disallowed_spend_type",
                    message=f"Type of spend '{spend_type}' is not permitted under current policy.",
                ),
            ),
        )

    amount = request.amount_excl_vat.amount
    label = format_money(request.amount_excl_vat)

    if amount <= config.manager_only_max:
        return PolicyDecision(
            decision_state=DecisionState.needs_manager_approval,
            required_approval_path=ApprovalPath.manager_only,
            reasons=(
                PolicyReason(
                    code="within_manager_threshold",
                    message=f"Amount {label} is within the manager-only approval threshold.",
                ),
            ),
        )

    if amount >= config.manager_and_director_min:
        return PolicyDecision(
            decision_state=DecisionState.needs_manager_and_director_approval,
            required_approval_path=ApprovalPath.manager_and_director,
            reasons=(
                PolicyReason(
                    code="requires_manager_and_director",
                    message=f"Amount {label} requires both manager and director approval.",
                ),
            ),
        )

    # Only reachable when the two thresholds leave a gap.
    return PolicyDecision(
        decision_state=DecisionState.needs_manager_approval,
        required_approval_path=ApprovalPath.manager_only,
        reasons=(
            PolicyReason(code="default_path", message="Fell back to manager approval by default."),
        ),
    )
