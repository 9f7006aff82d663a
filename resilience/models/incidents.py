"""
Canonical incident models.

This module defines the provider-agnostic incident record produced by the
normalizer, the correlation groups built from it, and the aggregate views
(summary, timeline, filter) computed over incident collections.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import (
    CloudProvider,
    CorrelationReason,
    IncidentSource,
    IncidentStatus,
    NormalizationErrorType,
    Severity,
    TimelineEventType,
)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps as UTC so collections can be compared."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Incident(BaseModel):
    """
    A normalized operational incident.

    Attributes:
        incident_id: Stable identifier ``provider:source:native_id``
        provider: Provider the alert came from
        source: Alert source within the provider
        native_id: Identifier in the source system
        title: Short human-readable title
        description: Longer description
        severity: Normalized severity
        status: Normalized lifecycle status
        resource_ref: Resource reference as reported by the source
        resource_id: Graph resource identifier, None when unresolved
        resource_type: Resource type when known
        region: Region or location of the incident
        started_at: When the incident started firing
        ended_at: When the incident resolved, if it has
        updated_at: Last state change
        tags: Key-value tags carried by the source
        raw_payload: Original provider payload, kept for traceability
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "incident_id": "aws:cloudwatch-alarm:arn:aws:cloudwatch:us-east-1:123:alarm:cpu",
                "provider": "aws",
                "source": "cloudwatch-alarm",
                "native_id": "arn:aws:cloudwatch:us-east-1:123:alarm:cpu",
                "title": "cpu-high",
                "severity": "high",
                "status": "firing",
                "resource_id": "i-0abc123",
                "region": "us-east-1",
                "started_at": "2026-10-17T08:00:00Z",
                "updated_at": "2026-10-17T08:00:00Z",
            }
        },
    )

    incident_id: str = Field(description="Stable incident identifier")
    provider: CloudProvider
    source: IncidentSource
    native_id: str = Field(default="")
    title: str = Field(default="")
    description: str = Field(default="")
    severity: Severity = Field(default=Severity.MEDIUM)
    status: IncidentStatus = Field(default=IncidentStatus.FIRING)
    resource_ref: Optional[str] = Field(default=None)
    resource_id: Optional[str] = Field(default=None)
    resource_type: Optional[str] = Field(default=None)
    region: str = Field(default="unknown")
    started_at: datetime
    ended_at: Optional[datetime] = Field(default=None)
    updated_at: Optional[datetime] = Field(default=None)
    tags: dict[str, str] = Field(default_factory=dict)
    raw_payload: dict[str, Any] = Field(default_factory=dict)

    @field_validator("started_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Normalize naive timestamps to UTC."""
        return _as_utc(v)

    @field_validator("ended_at")
    @classmethod
    def validate_time_window(cls, v: Optional[datetime], info) -> Optional[datetime]:
        """Ensure the incident does not end before it starts."""
        v = _as_utc(v)
        started = info.data.get("started_at")
        if v is not None and started is not None and v < started:
            raise ValueError("ended_at must not be before started_at")
        return v

    @property
    def is_open(self) -> bool:
        """Whether the incident still needs attention."""
        return self.status in (IncidentStatus.FIRING, IncidentStatus.ACKNOWLEDGED)

    @property
    def last_seen(self) -> datetime:
        """End of the incident window for proximity checks."""
        return self.ended_at or self.updated_at or self.started_at


class NormalizationError(BaseModel):
    """A payload that could not be mapped into a canonical incident."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0, description="Position of the payload in the input batch")
    provider: str
    source: str
    error_type: NormalizationErrorType
    field: Optional[str] = None
    message: str


class NormalizationResult(BaseModel):
    """Successfully normalized incidents plus per-record errors."""

    model_config = ConfigDict(frozen=True)

    incidents: list[Incident] = Field(default_factory=list)
    count: int = Field(default=0, ge=0)
    errors: list[NormalizationError] = Field(default_factory=list)


class CorrelationGroup(BaseModel):
    """
    Incidents believed to share a root cause.

    Attributes:
        group_id: Identifier assigned by the injected generator
        incident_ids: Member incidents (order not guaranteed)
        reasons: Kinds of evidence that linked members
        shared_resource_ids: Resources referenced by more than one member
        providers: Providers represented in the group
        window_start: Earliest member start
        window_end: Latest member end or update
        confidence: Strength of the strongest linking evidence (0.0-1.0)
        summary: Human-readable description
    """

    model_config = ConfigDict(frozen=True)

    group_id: str
    incident_ids: list[str]
    reasons: list[CorrelationReason] = Field(default_factory=list)
    shared_resource_ids: list[str] = Field(default_factory=list)
    providers: list[CloudProvider] = Field(default_factory=list)
    window_start: datetime
    window_end: datetime
    confidence: float = Field(ge=0.0, le=1.0)
    summary: str = ""


class CorrelationResult(BaseModel):
    """Correlation groups plus their count."""

    model_config = ConfigDict(frozen=True)

    groups: list[CorrelationGroup] = Field(default_factory=list)
    group_count: int = Field(default=0, ge=0)


class ResourceCount(BaseModel):
    """Incident count for one resource."""

    model_config = ConfigDict(frozen=True)

    resource: str
    count: int = Field(ge=0)


class IncidentSummary(BaseModel):
    """Dashboard-style aggregate of an incident collection."""

    model_config = ConfigDict(frozen=True)

    total: int = Field(default=0, ge=0)
    open_count: int = Field(default=0, ge=0)
    by_severity: dict[str, int] = Field(default_factory=dict)
    by_status: dict[str, int] = Field(default_factory=dict)
    by_provider: dict[str, int] = Field(default_factory=dict)
    by_source: dict[str, int] = Field(default_factory=dict)
    by_resource_type: dict[str, int] = Field(default_factory=dict)
    mttr_seconds: Optional[float] = Field(default=None, description="Mean time to resolve")
    top_resources: list[ResourceCount] = Field(default_factory=list)
    latest_incident_at: Optional[datetime] = None


class TimelineEntry(BaseModel):
    """A single state change on the incident timeline."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    event_type: TimelineEventType
    incident_id: str
    label: str


class IncidentTimeline(BaseModel):
    """Chronological view of incident state changes."""

    model_config = ConfigDict(frozen=True)

    entries: list[TimelineEntry] = Field(default_factory=list)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    incident_count: int = Field(default=0, ge=0)


class IncidentFilter(BaseModel):
    """Optional criteria for narrowing an incident collection; unset fields match everything."""

    model_config = ConfigDict(frozen=True)

    providers: Optional[list[CloudProvider]] = None
    sources: Optional[list[IncidentSource]] = None
    severities: Optional[list[Severity]] = None
    statuses: Optional[list[IncidentStatus]] = None
    started_after: Optional[datetime] = None
    started_before: Optional[datetime] = None
    resource: Optional[str] = None
    search: Optional[str] = None
    tags: Optional[dict[str, str]] = None

    @field_validator("started_after", "started_before")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)
