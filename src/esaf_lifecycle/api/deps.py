"""
esaf_lifecycle.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for the service directory and per-destination clients.
- Encapsulate app.state access patterns (directory/hosted services).
"""

from __future__ import annotations

from fastapi import Depends, Request

from esaf_lifecycle.protocol.client import ServiceClient, ServiceDirectory
from esaf_lifecycle.protocol.server import HostedService


def directory_from_app(request: Request) -> ServiceDirectory:
    # The directory is created in `esaf_lifecycle.api.app.create_app`.
    return request.app.state.directory  # type: ignore[attr-defined]


def hosted_services(request: Request) -> dict[str, HostedService]:
    return request.app.state.services  # type: ignore[attr-defined]


def intake_client(directory: ServiceDirectory = Depends(directory_from_app)) -> ServiceClient:
    return directory.client("intake")


def status_client(directory: ServiceDirectory = Depends(directory_from_app)) -> ServiceClient:
    return directory.client("status")


def approver_client(directory: ServiceDirectory = Depends(directory_from_app)) -> ServiceClient:
    return directory.client("approver")


# --- Module Notes -----------------------------------------------------------
# REST handlers always go through the protocol clients, never straight to a hosted
# service object, so they behave the same when the services live in other processes.
