"""
esaf_lifecycle.api.routers.health

Health and readiness endpoints.

Responsibilities:
- Provide liveness probe (`/healthz`).
- Provide readiness probe (`/readyz`) listing the services this process hosts.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from esaf_lifecycle.api.deps import hosted_services
from esaf_lifecycle.protocol.server import HostedService

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    # Liveness: process is up and serving HTTP.
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(
    services: dict[str, HostedService] = Depends(hosted_services),
) -> dict[str, Any]:
    # Readiness: every hosted service has been constructed and can take messages.
    return {"status": "ready", "services": sorted(services)}


# --- Module Notes -----------------------------------------------------------
# Kubernetes typically uses /healthz for liveness and /readyz for readiness gating.
