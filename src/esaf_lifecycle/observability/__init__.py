"""
esaf_lifecycle.observability

Observability package.

Responsibilities:
- Structured logging configuration.
- Request and message context propagation for consistent log enrichment.
"""

# Package marker.
