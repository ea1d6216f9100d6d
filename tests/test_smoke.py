"""
tests.test_smoke

Minimal smoke tests to validate the service can boot and serve core endpoints.

Responsibilities:
- Ensure the FastAPI app starts and the readiness probe lists hosted services.
- Ensure every hosted service publishes its capability descriptor.
"""

from __future__ import annotations

import httpx
import pytest

from esaf_lifecycle.api.app import create_app
from esaf_lifecycle.settings import Settings


@pytest.mark.asyncio
async def test_health_endpoints() -> None:
    app = create_app(settings=Settings(env="test"))

    # httpx 0.28 ASGITransport does not manage lifespan automatically; do it explicitly.
    await app.router.startup()
    try:
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            r = await client.get("/healthz")
            assert r.status_code == 200
            assert r.json()["status"] == "ok"

            r = await client.get("/readyz")
            assert r.status_code == 200
            assert r.json() == {
                "status": "ready",
                "services": ["approver", "intake", "policy", "status"],
            }
    finally:
        await app.router.shutdown()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("name", "intent"),
    [
        ("intake", "submit_request"),
        ("policy", "evaluate_policy"),
        ("approver", "list_pending"),
        ("status", "policy_decided"),
    ],
)
async def test_capability_descriptors(client, name, intent) -> None:
    r = await client.get(f"/services/{name}/.well-known/service.json")

    assert r.status_code == 200
    descriptor = r.json()
    assert descriptor["name"] == name
    assert descriptor["url"] == f"http://localhost:8080/services/{name}/messages"
    assert intent in descriptor["intents"]


@pytest.mark.asyncio
async def test_partial_hosting_mounts_only_hosted_services() -> None:
    app = create_app(settings=Settings(env="test", hosted_services=["policy"]))

    await app.router.startup()
    try:
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            r = await client.get("/services/policy/.well-known/service.json")
            assert r.status_code == 200

            r = await client.get("/services/status/.well-known/service.json")
            assert r.status_code == 404
    finally:
        await app.router.shutdown()


# --- Module Notes -----------------------------------------------------------
# Lifecycle behaviour is covered end to end in test_scenarios.py.
