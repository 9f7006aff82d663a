"""
Enumeration types for the resilience core.

All enums inherit from str to ensure JSON serialization compatibility and
to allow plain string literals in request payloads.
"""

from enum import Enum


class CloudProvider(str, Enum):
    """Closed set of providers a resource or incident can originate from."""

    AWS = "aws"
    AZURE = "azure"
    GCP = "gcp"
    KUBERNETES = "kubernetes"
    CUSTOM = "custom"


class IncidentSource(str, Enum):
    """
    Provider-specific alert sources understood by the incident normalizer.

    Each source has its own raw payload shape and a dedicated mapping.
    """

    CLOUDWATCH_ALARM = "cloudwatch-alarm"
    CLOUDWATCH_INSIGHT = "cloudwatch-insight"
    AZURE_METRIC_ALERT = "azure-metric-alert"
    AZURE_ACTIVITY_LOG = "azure-activity-log"
    GCP_ALERT_POLICY = "gcp-alert-policy"
    GCP_UPTIME_CHECK = "gcp-uptime-check"
    K8S_EVENT = "k8s-event"
    CUSTOM = "custom"


class Severity(str, Enum):
    """
    Incident severity, most urgent first.

    Provider severities (Azure 0-4, CloudWatch states, Kubernetes event
    types) are mapped onto this scale by the normalizer.
    """

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class IncidentStatus(str, Enum):
    """Lifecycle status of a canonical incident."""

    FIRING = "firing"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    SUPPRESSED = "suppressed"


class CorrelationReason(str, Enum):
    """Evidence that justified linking incidents into one group."""

    SHARED_RESOURCE = "shared-resource"
    CROSS_PROVIDER_RESOURCE = "cross-provider-resource"
    TOPOLOGY_PROXIMITY = "topology-proximity"
    REGIONAL_PROXIMITY = "regional-proximity"


class TimelineEventType(str, Enum):
    """State changes recorded on an incident timeline."""

    FIRED = "fired"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class FailureScenario(str, Enum):
    """Failure scenarios the recovery planner can synthesize plans for."""

    REGION_FAILURE = "region-failure"
    AZ_FAILURE = "az-failure"
    SERVICE_OUTAGE = "service-outage"
    DATA_CORRUPTION = "data-corruption"


class RiskLevel(str, Enum):
    """Risk classification for region findings and recommendation severity."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Grade(str, Enum):
    """Letter grade derived from the DR posture score."""

    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"


class BackupStrategy(str, Enum):
    """Backup protection level of a resource."""

    NONE = "none"
    SNAPSHOT = "snapshot"
    REPLICATION = "replication"
    MULTI_REGION = "multi-region"


class ReplicationStatus(str, Enum):
    """Replication mode of a resource."""

    NONE = "none"
    ASYNC = "async"
    SYNC = "sync"
    ACTIVE_ACTIVE = "active-active"


class RecommendationCategory(str, Enum):
    """Category of a DR recommendation."""

    BACKUP = "backup"
    REPLICATION = "replication"
    FAILOVER = "failover"
    REDUNDANCY = "redundancy"
    DISTRIBUTION = "distribution"
    MONITORING = "monitoring"
    RECOVERY_PLAN = "recovery-plan"


class Effort(str, Enum):
    """Implementation effort estimate for a recommendation."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class NormalizationErrorType(str, Enum):
    """Kinds of per-record normalization failure."""

    MISSING_FIELD = "missing-field"
    INVALID_FIELD = "invalid-field"
    UNSUPPORTED_SOURCE = "unsupported-source"
