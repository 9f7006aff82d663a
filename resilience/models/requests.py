"""
Request and response envelope models for the public operations.

Every operation validates its parameters through one of these models and
answers with an ``OperationResult``: a success flag plus either a payload
or an error message, never both.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from .dr import DRScoringWeights
from .enums import FailureScenario
from .graph import ResourceEdge, ResourceNode
from .incidents import Incident, IncidentFilter


class OperationResult(BaseModel):
    """Success/failure envelope returned by every operation."""

    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "OperationResult":
        return cls(success=False, error=error)


class DRAnalyzeRequest(BaseModel):
    """Parameters of the DR analyze operation."""

    nodes: list[ResourceNode]
    edges: list[ResourceEdge]
    weights: Optional[DRScoringWeights] = None
    planned_resource_ids: Optional[list[str]] = Field(
        default=None,
        description="Resources already covered by a recovery plan; omit when unknown",
    )


class RecoveryPlanRequest(BaseModel):
    """Parameters of the recovery plan operation."""

    nodes: list[ResourceNode]
    edges: list[ResourceEdge]
    scenario: FailureScenario
    target_region: Optional[str] = None
    target_zone: Optional[str] = None
    target_resource_type: Optional[str] = None


class NormalizeRequest(BaseModel):
    """Parameters of the incident normalize operation."""

    provider: str = Field(description="Provider tag, e.g. aws")
    source: str = Field(description="Source tag, e.g. cloudwatch-alarm")
    items: list[Any] = Field(description="Raw provider payloads; each is validated per record")
    nodes: Optional[list[ResourceNode]] = Field(
        default=None, description="Graph snapshot used to resolve resource references"
    )
    edges: Optional[list[ResourceEdge]] = None


class CorrelateRequest(BaseModel):
    """Parameters of the incident correlate operation."""

    incidents: list[Incident]
    nodes: Optional[list[ResourceNode]] = None
    edges: Optional[list[ResourceEdge]] = None
    window_minutes: Optional[float] = Field(default=None, ge=0.0)
    max_hops: Optional[int] = Field(default=None, ge=0)


class IncidentListRequest(BaseModel):
    """Parameters of the summarize, timeline and triage operations."""

    incidents: list[Incident]
    filter: Optional[IncidentFilter] = None
