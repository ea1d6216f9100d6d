from __future__ import annotations

import pytest

from esaf_lifecycle.domain.models import ApproverRole, DecisionOutcome
from esaf_lifecycle.errors import (
    DownstreamError,
    OutOfOrderDecision,
    ProtocolError,
    UnknownRequest,
    ValidationError,
    error_from_payload,
)
from esaf_lifecycle.protocol.envelope import (
    ENVELOPE_KEY,
    PolicyResult,
    SendRequest,
    StatusQuery,
    SubmitDecision,
    envelope_from_metadata,
    parse_envelope,
)


def test_missing_required_field_is_validation_error():
    with pytest.raises(ValidationError) as exc:
        parse_envelope({"intent": "status_query", "audience": "requester"})

    assert exc.value.code == "validation_error"
    assert any("requestId" in err["loc"] for err in exc.value.details["errors"])


def test_unknown_intent_is_validation_error():
    with pytest.raises(ValidationError):
        parse_envelope({"intent": "cancel_request", "requestId": "ESAF-2025-0001"})


def test_missing_envelope_metadata_is_validation_error():
    with pytest.raises(ValidationError):
        envelope_from_metadata({})


def test_policy_decided_is_accepted_as_policy_result(request_data):
    envelope = parse_envelope(
        {
            "intent": "policy_decided",
            "requestId": "ESAF-2025-0001",
            "financeRequest": request_data(),
            "policyDecision": {
                "decisionState": "needs_manager_approval",
                "requiredApprovalPath": "manager_only",
                "reasons": [],
            },
        }
    )

    assert isinstance(envelope, PolicyResult)
    assert envelope.finance_request.amount_excl_vat.currency == "GBP"


def test_envelopes_use_camel_case_on_the_wire():
    envelope = SubmitDecision(
        request_id="ESAF-2025-0001", role=ApproverRole.manager, outcome=DecisionOutcome.approved
    )

    assert envelope.to_wire() == {
        "intent": "submit_decision",
        "requestId": "ESAF-2025-0001",
        "role": "manager",
        "outcome": "approved",
    }


def test_send_request_wraps_envelope_in_metadata():
    body = SendRequest.wrap(StatusQuery(request_id="ESAF-2025-0002", audience="approver"), text="hi")

    wire = body.to_wire()
    assert wire["text"] == "hi"
    assert wire["messageId"]
    parsed = envelope_from_metadata(wire["metadata"])
    assert isinstance(parsed, StatusQuery)
    assert parsed.audience == "approver"
    assert ENVELOPE_KEY in wire["metadata"]


@pytest.mark.parametrize(
    ("code", "cls"),
    [
        ("out_of_order_decision", OutOfOrderDecision),
        ("unknown_request", UnknownRequest),
        ("downstream_error", DownstreamError),
        ("something_else", ProtocolError),
    ],
)
def test_error_payload_maps_back_to_exception(code, cls):
    error = error_from_payload({"code": code, "message": "boom", "details": {"requestId": "X"}})

    assert type(error) is cls
    assert error.message == "boom"
    assert error.details == {"requestId": "X"}
