"""
esaf_lifecycle.protocol

Cross-service message protocol.

Responsibilities:
- Correlation envelope (closed tagged union keyed by `intent`).
- Capability descriptor discovery and memoised per-destination clients.
- The generic send/receive endpoint every service mounts.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Services depend on `ServiceClient`, never on httpx or routers directly.
