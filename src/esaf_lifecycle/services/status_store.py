"""
esaf_lifecycle.services.status_store

In-process store of canonical status records.

Responsibilities:
- Hold one TrackedRequest (status record + latest finance request) per requestId.
- Hand out copies and accept whole-entry saves, so a caller's working copy becomes
  visible only when it is saved.
"""

from __future__ import annotations

from dataclasses import dataclass

from esaf_lifecycle.domain.models import FinanceRequest, StatusRecord


@dataclass(slots=True)
class TrackedRequest:
    status: StatusRecord
    finance_request: FinanceRequest | None = None

    def copy(self) -> TrackedRequest:
        # FinanceRequest is frozen and may be shared.
        return TrackedRequest(status=self.status.snapshot(), finance_request=self.finance_request)


class StatusRecordStore:
    def __init__(self) -> None:
        self._entries: dict[str, TrackedRequest] = {}

    def get(self, request_id: str) -> TrackedRequest | None:
        entry = self._entries.get(request_id)
        return entry.copy() if entry is not None else None

    def save(self, entry: TrackedRequest) -> None:
        self._entries[entry.status.request_id] = entry.copy()


# --- Module Notes -----------------------------------------------------------
# Records are never deleted; they live for the process lifetime.
