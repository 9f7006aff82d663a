"""API routers for all endpoints."""

from resilience.routers import dr, incidents

__all__ = ["dr", "incidents"]
