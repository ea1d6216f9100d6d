"""
esaf_lifecycle.protocol.client

HTTP client boundary used by every service to call another service.

Responsibilities:
- Discover a destination once through its capability descriptor and memoise it.
- Send one envelope per call and block for a single structured result or error.
- Convert transport failures into `DownstreamError` and structured error payloads
  back into the matching `ProtocolError` subclass.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

import httpx

from esaf_lifecycle.errors import DownstreamError, error_from_payload
from esaf_lifecycle.observability.logging import get_logger
from esaf_lifecycle.protocol.envelope import (
    CapabilityDescriptor,
    SendRequest,
    SendResponse,
    _Envelope,
)
from esaf_lifecycle.settings import ServiceName, Settings

DESCRIPTOR_PATH = ".well-known/service.json"

log = get_logger(__name__)


class MessageSender(Protocol):
    async def send(self, envelope: _Envelope, *, text: str = "") -> dict[str, Any]: ...


class ServiceClient:
    """
    One client per destination for the lifetime of the process.
    No timeout, retry or cancellation is applied here; callers decide how to degrade.
    """

    def __init__(self, *, name: str, base_url: str, http: httpx.AsyncClient) -> None:
        self._name = name
        self._base_url = base_url.rstrip("/")
        self._http = http
        self._descriptor: CapabilityDescriptor | None = None
        self._discovery_lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self._name

    async def descriptor(self) -> CapabilityDescriptor:
        if self._descriptor is not None:
            return self._descriptor
        async with self._discovery_lock:
            if self._descriptor is None:
                card_url = f"{self._base_url}/{DESCRIPTOR_PATH}"
                try:
                    r = await self._http.get(card_url)
                    r.raise_for_status()
                    self._descriptor = CapabilityDescriptor.model_validate(r.json())
                except (httpx.HTTPError, ValueError) as e:
                    raise DownstreamError(
                        f"Could not discover the {self._name} service.",
                        details={"destination": self._name, "reason": str(e)},
                    ) from e
                log.info("service_discovered", destination=self._name, url=self._descriptor.url)
        return self._descriptor

    async def send(self, envelope: _Envelope, *, text: str = "") -> dict[str, Any]:
        descriptor = await self.descriptor()
        intent = getattr(envelope, "intent", None)
        body = SendRequest.wrap(envelope, text=text)
        try:
            r = await self._http.post(descriptor.url, json=body.to_wire())
            r.raise_for_status()
            response = SendResponse.model_validate(r.json())
        except (httpx.HTTPError, ValueError) as e:
            log.warning(
                "service_call_failed", destination=self._name, intent=intent, error=str(e)
            )
            raise DownstreamError(
                f"Call to the {self._name} service failed.",
                details={"destination": self._name, "intent": intent, "reason": str(e)},
            ) from e

        if not response.ok:
            raise error_from_payload(response.error or {})
        return response.result or {}


class ServiceDirectory:
    def __init__(self, *, settings: Settings, http: httpx.AsyncClient) -> None:
        self._settings = settings
        self._http = http
        self._clients: dict[str, ServiceClient] = {}

    def client(self, name: ServiceName) -> ServiceClient:
        client = self._clients.get(name)
        if client is None:
            client = ServiceClient(
                name=name, base_url=self._settings.service_url(name), http=self._http
            )
            self._clients[name] = client
        return client


# --- Module Notes -----------------------------------------------------------
# With `loopback_transport` the shared httpx client is bound to the hosting app via
# `httpx.ASGITransport`, so the same code path serves in-process and networked setups.
