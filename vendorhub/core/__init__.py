"""
Core application utilities for settings, logging, errors and FastAPI dependencies.

This package provides:
- Application-level settings (separate from DB settings)
- The error hierarchy shared by every layer
- Dependency helpers (storage lookup, bearer token -> SecurityContext)
"""
