"""
esaf_lifecycle

Top-level package for the Essential Spend Authorisation (ESAF) lifecycle services.

Responsibilities:
- Expose package version metadata.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"


# --- Module Notes -----------------------------------------------------------
# Keep this file minimal to avoid import-time side effects across the codebase.
