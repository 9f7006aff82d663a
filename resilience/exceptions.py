"""
Error taxonomy for the resilience core.

Validation problems and unsupported mapping tags are raised as typed
exceptions and converted into failure envelopes by ``resilience.operations``.
Data-integrity problems (dangling edges, unresolved resources) are logged,
never raised.
"""

from typing import Optional


class ResilienceError(Exception):
    """Base class for all errors raised by the resilience core."""


class RequestValidationError(ResilienceError):
    """A required request field is missing or malformed."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class DuplicateResourceError(RequestValidationError):
    """Two nodes in the same snapshot share an identifier."""

    def __init__(self, resource_id: str):
        super().__init__(f"nodes: duplicate resource id '{resource_id}'", field="nodes")
        self.resource_id = resource_id


class UnsupportedSourceError(ResilienceError):
    """No incident mapping is registered for a (provider, source) pair."""

    def __init__(self, provider: str, source: str):
        super().__init__(
            f"No incident mapping registered for provider '{provider}' and source '{source}'"
        )
        self.provider = provider
        self.source = source


class IncidentMappingError(ResilienceError):
    """A single raw payload could not be mapped into a canonical incident."""

    def __init__(self, message: str, field: Optional[str] = None, error_type: str = "invalid-field"):
        super().__init__(message)
        self.field = field
        self.error_type = error_type
