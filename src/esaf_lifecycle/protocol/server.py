"""
esaf_lifecycle.protocol.server

Receiving side of the message protocol.

Responsibilities:
- Publish each hosted service's capability descriptor at a well-known path.
- Accept generic sends, parse the envelope, and dispatch to the owning service.
- Answer with a structured result or a structured error (always HTTP 200 for
  protocol-level failures).
"""

from __future__ import annotations

from typing import Any, Protocol

from fastapi import APIRouter, Depends, Request

from esaf_lifecycle import __version__
from esaf_lifecycle.errors import ProtocolError, ValidationError
from esaf_lifecycle.observability.logging import get_logger, message_context
from esaf_lifecycle.protocol.client import DESCRIPTOR_PATH
from esaf_lifecycle.protocol.envelope import (
    CapabilityDescriptor,
    SendRequest,
    SendResponse,
    envelope_from_metadata,
    request_id_of,
)
from esaf_lifecycle.settings import ServiceName, Settings

log = get_logger(__name__)


class HostedService(Protocol):
    name: str
    description: str
    intents: tuple[str, ...]

    async def handle(self, envelope: Any) -> dict[str, Any]: ...


def build_service_router(name: ServiceName) -> APIRouter:
    router = APIRouter(prefix=f"/services/{name}", tags=[f"service:{name}"])

    def hosted(request: Request) -> HostedService:
        return request.app.state.services[name]

    def settings_from_app(request: Request) -> Settings:
        return request.app.state.settings

    @router.get(f"/{DESCRIPTOR_PATH}", response_model=CapabilityDescriptor)
    async def describe(
        service: HostedService = Depends(hosted),
        settings: Settings = Depends(settings_from_app),
    ) -> CapabilityDescriptor:
        return CapabilityDescriptor(
            name=service.name,
            description=service.description,
            version=__version__,
            url=f"{settings.service_url(name)}/messages",
            intents=list(service.intents),
        )

    @router.post("/messages", response_model=SendResponse, response_model_exclude_none=True)
    async def receive(
        body: SendRequest,
        service: HostedService = Depends(hosted),
    ) -> SendResponse:
        intent: str | None = None
        request_id: str | None = None
        try:
            envelope = envelope_from_metadata(body.metadata)
            intent = envelope.intent
            request_id = request_id_of(envelope)
            if intent not in service.intents:
                raise ValidationError(
                    f"Intent '{intent}' is not served by the {name} service.",
                    details={"supported": list(service.intents)},
                )
            with message_context(destination=name, intent=intent, request_id=request_id):
                result = await service.handle(envelope)
        except ProtocolError as e:
            log.info(
                "message_rejected",
                destination=name,
                intent=intent,
                esaf_request_id=request_id,
                code=e.code,
                error=e.message,
            )
            return SendResponse(ok=False, error=e.to_payload())

        return SendResponse(ok=True, result=result)

    return router


# --- Module Notes -----------------------------------------------------------
# HTTP status codes other than 200 from `/messages` only ever come from the transport
# (malformed JSON, unknown route); the protocol itself reports errors in the body.
