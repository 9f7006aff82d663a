"""
Per-resource protection heuristics shared by the DR analyzer and planner.

Protection is read from the graph first (backup, replication and failover
edges leaving the resource) and can be overridden by discovery metadata
(``backup_strategy``, ``replication_status``, ``rto_minutes``,
``rpo_minutes``). Only resolved edges count.

RTO/RPO baselines (minutes):
    RTO = base RTO of the resource type x strategy multiplier
          (multi-region 0.2, replication 0.5, snapshot 1.0, none 3.0)
    RPO = active-active 0, sync 1, async 15, none 1440
"""

from datetime import datetime, timezone
from typing import Any, Callable, Optional, TypeVar

from resilience.engine.graph import ResourceGraph
from resilience.models.dr import RecoveryRequirement
from resilience.models.enums import BackupStrategy, ReplicationStatus
from resilience.models.graph import ResourceNode

CriticalityPredicate = Callable[[ResourceNode], bool]

# Resource types that hold state or serve traffic and need DR protection
CRITICAL_TYPES = frozenset({
    "database",
    "storage",
    "queue",
    "stream",
    "cache",
    "cluster",
    "compute",
})

DATA_TYPES = frozenset({"database", "storage"})

BACKUP_EDGES = frozenset({"backs-up", "backed-by"})
REPLICATION_EDGES = frozenset({"replicates-to", "replicates"})
FAILOVER_EDGES = frozenset({"fails-over-to"})
MONITORING_EDGES = frozenset({"monitors", "monitored-by"})

# Edges ordering recovery: the source comes back before the target
DEPENDENCY_EDGES = frozenset({"depends-on", "hosts", "feeds", "serves", "routes-to"})

BASE_RTO_MINUTES = {
    "database": 60,
    "storage": 30,
    "compute": 15,
    "cache": 10,
    "queue": 20,
    "cluster": 45,
    "stream": 15,
}
DEFAULT_RTO_MINUTES = 30

STRATEGY_RTO_MULTIPLIER = {
    BackupStrategy.MULTI_REGION: 0.2,
    BackupStrategy.REPLICATION: 0.5,
    BackupStrategy.SNAPSHOT: 1.0,
    BackupStrategy.NONE: 3.0,
}

RPO_MINUTES = {
    ReplicationStatus.ACTIVE_ACTIVE: 0,
    ReplicationStatus.SYNC: 1,
    ReplicationStatus.ASYNC: 15,
    ReplicationStatus.NONE: 1440,
}

_CRITICAL_MARKERS = ("criticality", "tier", "priority")

E = TypeVar("E")


def metadata_value(node: ResourceNode, *keys: str) -> Any:
    """First present metadata value among ``keys``, None otherwise."""
    for key in keys:
        if key in node.metadata and node.metadata[key] is not None:
            return node.metadata[key]
    return None


def metadata_minutes(node: ResourceNode, *keys: str) -> Optional[int]:
    """Non-negative integer minutes from metadata, None when absent or invalid."""
    value = metadata_value(node, *keys)
    if isinstance(value, bool):
        return None
    try:
        minutes = int(round(float(value)))
    except (TypeError, ValueError):
        return None
    return minutes if minutes >= 0 else None


def _metadata_enum(node: ResourceNode, enum_cls: type[E], *keys: str) -> Optional[E]:
    value = metadata_value(node, *keys)
    if value is None:
        return None
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        return None


def default_criticality(node: ResourceNode) -> bool:
    """
    Default criticality predicate.

    A resource is critical when its type is in CRITICAL_TYPES, when a
    ``criticality``/``tier``/``priority`` tag or metadata value equals
    "critical", or when it carries a truthy ``critical`` tag.
    """
    if node.resource_type.lower() in CRITICAL_TYPES:
        return True
    for key in _CRITICAL_MARKERS:
        for source in (node.tags, node.metadata):
            if str(source.get(key, "")).lower() == "critical":
                return True
    flag = node.tags.get("critical", node.metadata.get("critical"))
    return str(flag).lower() in ("true", "1", "yes")


def backup_strategy(node: ResourceNode, graph: ResourceGraph) -> BackupStrategy:
    """Backup strategy from metadata, falling back to backup/replication edges."""
    declared = _metadata_enum(node, BackupStrategy, "backup_strategy", "backupStrategy")
    if declared is not None:
        return declared

    has_backup = bool(graph.outgoing(node.id, BACKUP_EDGES))
    has_replication = bool(graph.outgoing(node.id, REPLICATION_EDGES))
    if has_replication and has_backup:
        return BackupStrategy.MULTI_REGION
    if has_replication:
        return BackupStrategy.REPLICATION
    if has_backup:
        return BackupStrategy.SNAPSHOT
    return BackupStrategy.NONE


def replication_status(node: ResourceNode, graph: ResourceGraph) -> ReplicationStatus:
    """Replication status from metadata, falling back to replication/failover edges."""
    declared = _metadata_enum(
        node, ReplicationStatus, "replication_status", "replicationStatus"
    )
    if declared is not None:
        return declared

    if graph.outgoing(node.id, REPLICATION_EDGES):
        if graph.outgoing(node.id, FAILOVER_EDGES):
            return ReplicationStatus.SYNC
        return ReplicationStatus.ASYNC
    return ReplicationStatus.NONE


def failover_capable(node: ResourceNode, graph: ResourceGraph) -> bool:
    if graph.outgoing(node.id, FAILOVER_EDGES):
        return True
    return replication_status(node, graph) == ReplicationStatus.ACTIVE_ACTIVE


def is_cross_region_replicated(node: ResourceNode, graph: ResourceGraph) -> bool:
    """Replicated or failing over to another region, or running active-active."""
    if replication_status(node, graph) == ReplicationStatus.ACTIVE_ACTIVE:
        return True
    for edge in graph.outgoing(node.id, REPLICATION_EDGES | FAILOVER_EDGES):
        target = graph.get_node(edge.target_id)
        if target is not None and (target.region, target.provider) != (node.region, node.provider):
            return True
    return False


def estimate_rto(resource_type: str, strategy: BackupStrategy) -> int:
    """Estimate RTO in minutes for a resource type protected by ``strategy``."""
    base = BASE_RTO_MINUTES.get(resource_type.lower(), DEFAULT_RTO_MINUTES)
    return int(round(base * STRATEGY_RTO_MULTIPLIER[strategy]))


def estimate_rpo(status: ReplicationStatus) -> int:
    """Estimate RPO in minutes from replication status."""
    return RPO_MINUTES[status]


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO string, epoch milliseconds or datetime into aware UTC."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        try:
            parsed = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        text = str(value).strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def recovery_point_minutes(
    node: ResourceNode,
    graph: ResourceGraph,
    as_of: Optional[datetime] = None,
) -> int:
    """
    Worst-case data-loss window of a resource in minutes.

    Order of precedence: explicit ``rpo_minutes`` metadata, replication
    status when replicated, age of ``last_backup_at`` relative to ``as_of``,
    then the unprotected baseline.
    """
    declared = metadata_minutes(node, "rpo_minutes", "rpoMinutes")
    if declared is not None:
        return declared

    status = replication_status(node, graph)
    if status != ReplicationStatus.NONE:
        return estimate_rpo(status)

    last_backup = parse_timestamp(metadata_value(node, "last_backup_at", "lastBackupAt"))
    if last_backup is not None and as_of is not None:
        age = (as_of - last_backup).total_seconds() / 60.0
        return max(0, int(round(age)))

    return estimate_rpo(ReplicationStatus.NONE)


def recovery_time_minutes(node: ResourceNode, graph: ResourceGraph) -> int:
    """Estimated time to restore a resource, honouring ``rto_minutes`` metadata."""
    declared = metadata_minutes(node, "rto_minutes", "rtoMinutes")
    if declared is not None:
        return declared
    return estimate_rto(node.resource_type, backup_strategy(node, graph))


def get_recovery_requirement(
    node: ResourceNode,
    graph: ResourceGraph,
    as_of: Optional[datetime] = None,
) -> RecoveryRequirement:
    """Summarise protection level and recovery objectives of one resource."""
    return RecoveryRequirement(
        node_id=node.id,
        rto=recovery_time_minutes(node, graph),
        rpo=recovery_point_minutes(node, graph, as_of=as_of),
        backup_strategy=backup_strategy(node, graph),
        replication_status=replication_status(node, graph),
        failover_capable=failover_capable(node, graph),
    )
