"""
esaf_lifecycle.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for every hosted service.
- Carry destination base addresses and policy thresholds (configuration, not protocol).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ServiceName = Literal["intake", "policy", "approver", "status"]

ALL_SERVICES: tuple[ServiceName, ...] = ("intake", "policy", "approver", "status")


class Settings(BaseSettings):
    """
    One settings object per process. A process may host any subset of the four
    services; the rest are reached over HTTP at their configured base addresses.
    """

    model_config = SettingsConfigDict(env_prefix="ESAF_", case_sensitive=False)

    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "esaf-lifecycle"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    hosted_services: list[ServiceName] = Field(default_factory=lambda: list(ALL_SERVICES))

    # Destination base addresses. Each exposes `/.well-known/service.json` and `/messages`.
    intake_service_url: str = "http://localhost:8080/services/intake"
    policy_service_url: str = "http://localhost:8080/services/policy"
    approver_service_url: str = "http://localhost:8080/services/approver"
    status_service_url: str = "http://localhost:8080/services/status"

    # Route cross-service calls through the hosting app instead of the network.
    loopback_transport: bool = True

    # Policy thresholds (amounts exclusive of VAT).
    manager_only_max: Decimal = Decimal("20000")
    manager_and_director_min: Decimal = Decimal("20000.01")
    disallowed_spend_types: list[str] = Field(default_factory=lambda: ["travel"])

    # Narrative generator; template summaries are used when unset.
    narrative_service_url: str | None = None

    request_id_prefix: str = "ESAF"

    def service_url(self, name: ServiceName) -> str:
        urls = {
            "intake": self.intake_service_url,
            "policy": self.policy_service_url,
            "approver": self.approver_service_url,
            "status": self.status_service_url,
        }
        return urls[name].rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Splitting the four services across processes only needs `hosted_services`,
# the four base URLs and `loopback_transport=false`; call contracts stay the same.
