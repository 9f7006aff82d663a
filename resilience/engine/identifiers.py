"""
Identifier generators injected into components that mint identifiers.

Components never keep a process-wide counter; callers pass a generator (or
get a fresh one per call) so results stay deterministic and testable.
"""

from abc import ABC, abstractmethod
from uuid import uuid4


class IdentifierGenerator(ABC):
    """Source of identifiers for generated records."""

    @abstractmethod
    def next_id(self, prefix: str) -> str:
        """
        Produce the next identifier.

        Args:
            prefix: Short record-kind prefix, e.g. "corr"

        Returns:
            New identifier string
        """


class SequentialIdGenerator(IdentifierGenerator):
    """
    Deterministic generator producing ``<prefix>-0001``, ``<prefix>-0002``, ...

    The counter lives on the instance, so two generators never interfere.
    """

    def __init__(self, start: int = 1, width: int = 4):
        self._next = start
        self._width = width

    def next_id(self, prefix: str) -> str:
        value = f"{prefix}-{self._next:0{self._width}d}"
        self._next += 1
        return value


class UUIDGenerator(IdentifierGenerator):
    """Random UUID v4 identifiers for callers that persist results."""

    def next_id(self, prefix: str) -> str:
        return f"{prefix}_{uuid4()}"
