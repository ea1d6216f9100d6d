"""
tests.test_scenarios

End-to-end lifecycle scenarios driven through the REST surface.

Responsibilities:
- Boot the app with every service hosted and loopback transport.
- Exercise intake, policy, orchestrator and inbox over the message protocol.
"""

from __future__ import annotations

import httpx
import pytest


async def _submit(client: httpx.AsyncClient, payload: dict) -> dict:
    r = await client.post("/v1/requests", json=payload)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["complete"] is True
    return body


async def _pending(client: httpx.AsyncClient, role: str) -> list[str]:
    r = await client.get(f"/v1/approvers/{role}/pending")
    assert r.status_code == 200, r.text
    return [item["requestId"] for item in r.json()["items"]]


async def _decide(
    client: httpx.AsyncClient, role: str, request_id: str, outcome: str, comment: str | None = None
) -> httpx.Response:
    body = {"requestId": request_id, "outcome": outcome}
    if comment is not None:
        body["comment"] = comment
    return await client.post(f"/v1/approvers/{role}/decisions", json=body)


@pytest.mark.asyncio
async def test_manager_only_request_is_approved(client, request_data):
    submitted = await _submit(client, request_data(request_id=None, amount="10000"))
    request_id = submitted["requestId"]
    assert submitted["policyDecision"]["requiredApprovalPath"] == "manager_only"
    assert await _pending(client, "manager") == [request_id]

    r = await _decide(client, "manager", request_id, "approved")
    assert r.status_code == 200, r.text
    assert r.json()["statusRecord"]["currentState"] == "approved"
    assert r.json()["remaining"] == 0

    assert await _pending(client, "manager") == []
    assert await _pending(client, "director") == []

    r = await client.get(f"/v1/requests/{request_id}/status")
    assert r.status_code == 200
    status = r.json()
    assert status["statusRecord"]["currentState"] == "approved"
    assert status["statusRecord"]["notifiedApproverRoles"] == ["manager"]


@pytest.mark.asyncio
async def test_two_step_request_reaches_director_once(client, request_data):
    submitted = await _submit(client, request_data(request_id=None, amount="30000"))
    request_id = submitted["requestId"]
    assert submitted["policyDecision"]["requiredApprovalPath"] == "manager_and_director"
    assert await _pending(client, "director") == []

    r = await _decide(client, "manager", request_id, "approved")
    assert r.json()["statusRecord"]["currentState"] == "awaiting_director_approval"
    assert await _pending(client, "director") == [request_id]

    r = await _decide(client, "director", request_id, "approved", "Agreed")
    assert r.status_code == 200, r.text
    record = r.json()["statusRecord"]
    assert record["currentState"] == "approved"
    assert record["notifiedApproverRoles"] == ["manager", "director"]
    assert [entry["state"] for entry in record["history"]] == [
        "submitted",
        "policy_validated",
        "awaiting_manager_approval",
        "awaiting_director_approval",
        "approved",
    ]


@pytest.mark.asyncio
async def test_disallowed_spend_never_reaches_an_inbox(client, request_data):
    submitted = await _submit(
        client, request_data(request_id=None, amount="5000", type_of_spend="travel")
    )
    request_id = submitted["requestId"]

    assert submitted["statusRecord"]["currentState"] == "auto_rejected"
    assert await _pending(client, "manager") == []
    assert await _pending(client, "director") == []

    r = await _decide(client, "manager", request_id, "approved")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "not_found"


@pytest.mark.asyncio
async def test_more_info_keeps_request_with_manager(client, request_data):
    submitted = await _submit(client, request_data(request_id=None, amount="10000"))
    request_id = submitted["requestId"]

    r = await _decide(client, "manager", request_id, "more_info_requested", "Please attach quotes")
    assert r.status_code == 200, r.text
    assert r.json()["statusRecord"]["currentState"] == "awaiting_manager_approval"
    assert await _pending(client, "manager") == [request_id]

    r = await client.get(f"/v1/requests/{request_id}/status", params={"audience": "approver"})
    history = r.json()["statusRecord"]["history"]
    assert "Please attach quotes" in history[-1]["note"]


@pytest.mark.asyncio
async def test_director_decision_out_of_order_is_refused(client, request_data):
    submitted = await _submit(client, request_data(request_id=None, amount="30000"))
    request_id = submitted["requestId"]

    r = await client.post(
        "/services/status/messages",
        json={
            "text": "director approves early",
            "metadata": {
                "envelope": {
                    "intent": "approver_decision",
                    "requestId": request_id,
                    "role": "director",
                    "outcome": "approved",
                }
            },
        },
    )

    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is False
    assert body["error"]["code"] == "out_of_order_decision"

    r = await client.get(f"/v1/requests/{request_id}/status")
    assert r.json()["statusRecord"]["currentState"] == "awaiting_manager_approval"


@pytest.mark.asyncio
async def test_incomplete_request_gets_follow_up_question(client):
    r = await client.post("/v1/requests", json={"directorate": "Children's Services"})

    assert r.status_code == 200
    body = r.json()
    assert body["complete"] is False
    assert body["missingFields"][0] == "serviceName"
    assert body["question"]


@pytest.mark.asyncio
async def test_unknown_request_status_is_404(client):
    r = await client.get("/v1/requests/ESAF-2025-4040/status")

    assert r.status_code == 404
    assert r.json()["error"]["code"] == "not_found"


@pytest.mark.asyncio
async def test_envelope_missing_field_is_validation_error(client):
    r = await client.post(
        "/services/approver/messages",
        json={"metadata": {"envelope": {"intent": "submit_decision", "role": "manager"}}},
    )

    body = r.json()
    assert body["ok"] is False
    assert body["error"]["code"] == "validation_error"


@pytest.mark.asyncio
async def test_service_refuses_intent_it_does_not_serve(client):
    r = await client.post(
        "/services/policy/messages",
        json={"metadata": {"envelope": {"intent": "list_pending", "role": "manager"}}},
    )

    body = r.json()
    assert body["ok"] is False
    assert body["error"]["code"] == "validation_error"
    assert body["error"]["details"]["supported"] == ["evaluate_policy"]
