"""Utility modules for logging and common helpers."""

from resilience.utils.logging import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]
