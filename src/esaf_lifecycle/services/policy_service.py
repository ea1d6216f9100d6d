from __future__ import annotations

from typing import Any

from esaf_lifecycle.domain.policy import PolicyConfig, evaluate
from esaf_lifecycle.errors import ValidationError
from esaf_lifecycle.observability.logging import get_logger
from esaf_lifecycle.protocol.envelope import EvaluatePolicy

log = get_logger(__name__)


class PolicyService:
    name = "policy"
    description = "Evaluates completed ESAF requests against finance policy thresholds."
    intents = ("evaluate_policy",)

    def __init__(self, *, config: PolicyConfig) -> None:
        self._config = config

    async def handle(self, envelope: Any) -> dict[str, Any]:
        if not isinstance(envelope, EvaluatePolicy):
            raise ValidationError(
                f"Intent '{getattr(envelope, 'intent', None)}' is not served by the policy service."
            )

        # The envelope model already guarantees amountExclVAT and typeOfSpend are present.
        request = envelope.finance_request
        decision = evaluate(request, self._config)
        log.info(
            "policy_evaluated",
            esaf_request_id=request.request_id,
            decision_state=decision.decision_state.value,
            path=decision.required_approval_path.value,
        )

        lines = [
            f"Policy decision: {decision.decision_state.value} "
            f"({decision.required_approval_path.value})"
        ]
        lines += [f"- {reason.message}" for reason in decision.reasons]
        return {"policyDecision": decision.to_wire(), "summaryText": "\n".join(lines)}
