"""
tests.conftest

Shared fixtures: settings, a booted app with an ASGI client, and request builders.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from esaf_lifecycle.api.app import create_app
from esaf_lifecycle.domain.models import FinanceRequest
from esaf_lifecycle.domain.policy import PolicyConfig
from esaf_lifecycle.settings import Settings


def _request_data(
    *,
    request_id: str | None = "ESAF-2025-0001",
    amount: str = "10000",
    type_of_spend: str = "services",
    **overrides: Any,
) -> dict[str, Any]:
    data: dict[str, Any] = {
        "directorate": "Adult Social Care",
        "serviceName": "Home Care",
        "costCentreCode": "CC-4410",
        "typeOfSpend": type_of_spend,
        "amountExclVAT": {"amount": amount, "currency": "GBP"},
        "ringFencedFunding": "No",
        "isBusinessCritical": "Yes",
        "isStatutory": "Yes",
        "canBeDeferred": "No",
        "hasContractInPlace": "Yes",
        "descriptionOfSpend": "Agency carers to cover winter pressures.",
        "justification": "Needed to meet assessed care needs.",
        "headOfFinance": "Priya Shah",
        "executiveTeamOrDelegate": "Sam Okafor",
    }
    if request_id is not None:
        data["requestId"] = request_id
    data.update(overrides)
    return data


@pytest.fixture
def request_data() -> Callable[..., dict[str, Any]]:
    return _request_data


@pytest.fixture
def make_request() -> Callable[..., FinanceRequest]:
    def _make(**kwargs: Any) -> FinanceRequest:
        return FinanceRequest.model_validate(_request_data(**kwargs))

    return _make


@pytest.fixture
def policy_config() -> PolicyConfig:
    return PolicyConfig.build(
        manager_only_max="20000",
        manager_and_director_min="20000.01",
        disallowed_spend_types=["travel"],
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(env="test", log_level="WARNING")


@pytest_asyncio.fixture
async def app(settings: Settings) -> AsyncIterator[FastAPI]:
    app = create_app(settings=settings)
    # httpx ASGITransport does not manage lifespan automatically; do it explicitly.
    await app.router.startup()
    try:
        yield app
    finally:
        await app.router.shutdown()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
