"""
Public Pydantic schemas used by the stores, the admin service, FastAPI routes, and tests.

Schemas are grouped by domain module (customers, finance, etc.) and also
include common reusable models such as read-model bases and error envelopes.
"""

from .common import MessageResponse, utcnow  # noqa: F401
