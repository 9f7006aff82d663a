"""
Pydantic v2 data models for the resilience core.

Model Organization:
    - enums: Enumeration types for consistent classification
    - graph: Resource nodes and relationship edges
    - dr: DR scoring weights, posture analysis and recovery plans
    - incidents: Canonical incidents, correlation groups and aggregates
    - requests: Operation request models and the result envelope

All records are frozen: they are built once per analysis call and
discarded after the caller consumes the result.
"""

from .enums import (
    BackupStrategy,
    CloudProvider,
    CorrelationReason,
    Effort,
    FailureScenario,
    Grade,
    IncidentSource,
    IncidentStatus,
    NormalizationErrorType,
    RecommendationCategory,
    ReplicationStatus,
    RiskLevel,
    Severity,
    TimelineEventType,
)
from .graph import ResourceEdge, ResourceNode
from .dr import (
    DRAnalysis,
    DRRecommendation,
    DRScoringWeights,
    RecoveryPlan,
    RecoveryRequirement,
    RecoveryStep,
    SingleRegionRisk,
)
from .incidents import (
    CorrelationGroup,
    CorrelationResult,
    Incident,
    IncidentFilter,
    IncidentSummary,
    IncidentTimeline,
    NormalizationError,
    NormalizationResult,
    ResourceCount,
    TimelineEntry,
)
from .requests import (
    CorrelateRequest,
    DRAnalyzeRequest,
    IncidentListRequest,
    NormalizeRequest,
    OperationResult,
    RecoveryPlanRequest,
)

__all__ = [
    # Enumerations
    "BackupStrategy",
    "CloudProvider",
    "CorrelationReason",
    "Effort",
    "FailureScenario",
    "Grade",
    "IncidentSource",
    "IncidentStatus",
    "NormalizationErrorType",
    "RecommendationCategory",
    "ReplicationStatus",
    "RiskLevel",
    "Severity",
    "TimelineEventType",
    # Graph
    "ResourceEdge",
    "ResourceNode",
    # DR
    "DRAnalysis",
    "DRRecommendation",
    "DRScoringWeights",
    "RecoveryPlan",
    "RecoveryRequirement",
    "RecoveryStep",
    "SingleRegionRisk",
    # Incidents
    "CorrelationGroup",
    "CorrelationResult",
    "Incident",
    "IncidentFilter",
    "IncidentSummary",
    "IncidentTimeline",
    "NormalizationError",
    "NormalizationResult",
    "ResourceCount",
    "TimelineEntry",
    # Requests
    "CorrelateRequest",
    "DRAnalyzeRequest",
    "IncidentListRequest",
    "NormalizeRequest",
    "OperationResult",
    "RecoveryPlanRequest",
]
