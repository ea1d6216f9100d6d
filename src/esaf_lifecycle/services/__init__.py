"""
esaf_lifecycle.services

Service-layer package.

Responsibilities:
- One single-owner object per hosted service (intake, policy, approver inbox, status).
- Own all in-memory state and decide when cross-service calls happen.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Services should be pure Python and easily testable with fake clients.
