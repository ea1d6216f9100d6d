"""
esaf_lifecycle.domain

Domain package.

Responsibilities:
- Finance request, policy decision, status record and inbox item models.
- The pure policy evaluator.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Nothing in this package performs I/O; services own state and transport.
