from __future__ import annotations

import httpx

from esaf_lifecycle.domain.policy import PolicyConfig
from esaf_lifecycle.protocol.client import ServiceDirectory
from esaf_lifecycle.protocol.server import HostedService
from esaf_lifecycle.services.dispatcher import NotificationDispatcher
from esaf_lifecycle.services.inbox import ApprovalInboxStore
from esaf_lifecycle.services.intake import IntakeCollector, RequestIdSequence
from esaf_lifecycle.services.orchestrator import LifecycleOrchestrator
from esaf_lifecycle.services.policy_service import PolicyService
from esaf_lifecycle.services.status_store import StatusRecordStore
from esaf_lifecycle.services.summaries import (
    HttpSummaryGenerator,
    SummaryGenerator,
    TemplateSummaryGenerator,
)
from esaf_lifecycle.settings import Settings


def build_summary_generator(
    settings: Settings, narrative_http: httpx.AsyncClient | None
) -> SummaryGenerator:
    if settings.narrative_service_url and narrative_http is not None:
        return HttpSummaryGenerator(http=narrative_http, url=settings.narrative_service_url)
    return TemplateSummaryGenerator()


def build_services(
    *,
    settings: Settings,
    directory: ServiceDirectory,
    narrative_http: httpx.AsyncClient | None = None,
) -> dict[str, HostedService]:
    """
    Instantiate the services this process hosts. Each one reaches its peers only
    through `directory`, whether or not the peer is hosted here too.
    """

    hosted = set(settings.hosted_services)
    services: dict[str, HostedService] = {}

    if "policy" in hosted:
        services["policy"] = PolicyService(config=PolicyConfig.from_settings(settings))
    if "approver" in hosted:
        services["approver"] = ApprovalInboxStore(status=directory.client("status"))
    if "status" in hosted:
        services["status"] = LifecycleOrchestrator(
            store=StatusRecordStore(),
            dispatcher=NotificationDispatcher(inbox=directory.client("approver")),
            summaries=build_summary_generator(settings, narrative_http),
        )
    if "intake" in hosted:
        services["intake"] = IntakeCollector(
            policy=directory.client("policy"),
            status=directory.client("status"),
            ids=RequestIdSequence(prefix=settings.request_id_prefix),
        )
    return services
