"""
Recovery Planner

Synthesizes a dependency-ordered recovery plan for a failure scenario.

Planning Algorithm:
    1. Select the resources affected by the scenario
    2. Extract their subgraph and its dependency edges
    3. Order the resources with Kahn's algorithm; ready resources are
       emitted by (type priority, id) so data stores come back first
    4. When a cycle blocks progress, emit the lowest-id remaining resource
       and flag its step for manual intervention
    5. Layer steps by dependency depth into parallel recovery batches
    6. RTO is the longest duration-weighted chain, RPO the worst
       data-loss window among affected resources

Dependency edges point from the resource that must recover first to the
resource that follows it (``hosts``, ``feeds``, ``serves``, ``routes-to``
and ``depends-on`` as emitted by the discovery adapters).

Example:
    >>> planner = RecoveryPlanner()
    >>> plan = planner.plan(graph, FailureScenario.REGION_FAILURE, target_region="us-east-1")
    >>> for step in plan.recovery_steps:
    ...     print(step.order, step.action, step.depends_on)
"""

import heapq
import math
from datetime import datetime
from typing import Optional

import structlog

from resilience.engine.dr import protection
from resilience.engine.dr.protection import (
    DATA_TYPES,
    DEPENDENCY_EDGES,
    CriticalityPredicate,
    default_criticality,
)
from resilience.engine.graph import ResourceGraph
from resilience.models.dr import RecoveryPlan, RecoveryStep
from resilience.models.enums import BackupStrategy, FailureScenario
from resilience.models.graph import ResourceNode

logger = structlog.get_logger()

# Lower recovers first when nothing else orders two resources
TYPE_PRIORITY = {
    "database": 1,
    "storage": 2,
    "cache": 3,
    "queue": 4,
    "stream": 4,
    "compute": 5,
    "cluster": 6,
}
DEFAULT_TYPE_PRIORITY = 10

RESTORE_ACTIONS = {
    "database": "database",
    "storage": "storage",
    "compute": "compute instances",
    "cache": "cache cluster",
    "queue": "message queue",
    "cluster": "container cluster",
    "stream": "data stream",
}

ZONE_KEYS = ("availability_zone", "availabilityZone", "zone")


class RecoveryPlanner:
    """
    Builds recovery plans from a resource graph snapshot.

    Attributes:
        is_critical: Criticality predicate used by the service-outage scenario
        as_of: Reference time for backup-age based RPO estimates
    """

    def __init__(
        self,
        criticality: Optional[CriticalityPredicate] = None,
        as_of: Optional[datetime] = None,
    ):
        self.is_critical = criticality or default_criticality
        self.as_of = as_of
        self.logger = structlog.get_logger()

    def plan(
        self,
        graph: ResourceGraph,
        scenario: FailureScenario,
        target_region: Optional[str] = None,
        target_zone: Optional[str] = None,
        target_resource_type: Optional[str] = None,
    ) -> RecoveryPlan:
        """
        Generate a recovery plan for a failure scenario.

        Args:
            graph: Resource graph snapshot
            scenario: Failure scenario to plan for
            target_region: Failed region (region and AZ failures)
            target_zone: Failed availability zone (AZ failure)
            target_resource_type: Failed service type (service outage, data corruption)

        Returns:
            RecoveryPlan; empty when no resource is affected
        """
        scenario = FailureScenario(scenario)
        affected = self.affected_resources(
            graph, scenario, target_region, target_zone, target_resource_type
        )

        self.logger.info(
            "recovery_planning_started",
            scenario=scenario.value,
            target_region=target_region,
            affected_count=len(affected),
        )

        if not affected:
            return RecoveryPlan(scenario=scenario)

        subgraph = graph.subgraph_by_ids(n.id for n in affected)
        ordered = self._order(subgraph)

        steps: list[RecoveryStep] = []
        order_of: dict[str, int] = {}
        for index, (node_id, manual) in enumerate(ordered, start=1):
            node = subgraph.get_node(node_id)
            depends_on = sorted(
                order_of[e.source_id]
                for e in subgraph.incoming(node_id, DEPENDENCY_EDGES)
                if e.source_id in order_of
            )
            order_of[node_id] = index
            steps.append(
                RecoveryStep(
                    order=index,
                    action=self._action(node, graph, scenario),
                    resource_id=node.id,
                    resource_name=node.display_name,
                    estimated_duration=protection.recovery_time_minutes(node, graph),
                    depends_on=sorted(set(depends_on)),
                    manual=manual or _flagged_manual(node),
                )
            )

        plan = RecoveryPlan(
            scenario=scenario,
            affected_resources=affected,
            recovery_steps=steps,
            estimated_rto=self._critical_path(steps),
            estimated_rpo=max(
                protection.recovery_point_minutes(n, graph, as_of=self.as_of) for n in affected
            ),
            dependency_groups=self._layers(steps),
        )

        self.logger.info(
            "recovery_planning_complete",
            scenario=scenario.value,
            step_count=len(steps),
            manual_steps=len(plan.manual_steps),
            estimated_rto=plan.estimated_rto,
            estimated_rpo=plan.estimated_rpo,
        )
        return plan

    def affected_resources(
        self,
        graph: ResourceGraph,
        scenario: FailureScenario,
        target_region: Optional[str] = None,
        target_zone: Optional[str] = None,
        target_resource_type: Optional[str] = None,
    ) -> list[ResourceNode]:
        """
        Resources impacted by a scenario.

        region-failure: every node in the target region (all nodes without one)
        az-failure: nodes in the target zone; without zone data, the first
            third (by id) of the regional nodes
        service-outage: nodes of the target type, else all critical nodes
        data-corruption: databases, storage and the target type
        """
        nodes = graph.nodes
        if scenario == FailureScenario.REGION_FAILURE:
            return [n for n in nodes if target_region is None or n.region == target_region]

        if scenario == FailureScenario.AZ_FAILURE:
            regional = [n for n in nodes if target_region is None or n.region == target_region]
            if target_zone is not None:
                return [
                    n for n in regional
                    if str(protection.metadata_value(n, *ZONE_KEYS)) == target_zone
                ]
            regional = sorted(regional, key=lambda n: n.id)
            return regional[: math.ceil(len(regional) / 3)]

        if scenario == FailureScenario.SERVICE_OUTAGE:
            if target_resource_type:
                return [n for n in nodes if n.resource_type == target_resource_type]
            return [n for n in nodes if self.is_critical(n)]

        data_types = set(DATA_TYPES)
        if target_resource_type:
            data_types.add(target_resource_type.lower())
        return [n for n in nodes if n.resource_type.lower() in data_types]

    def _order(self, subgraph: ResourceGraph) -> list[tuple[str, bool]]:
        """
        Kahn's algorithm with deterministic cycle breaking.

        Returns:
            (node id, manual) pairs in emission order; manual marks nodes
            emitted to break a dependency cycle
        """
        in_degree = {n.id: len(subgraph.incoming(n.id, DEPENDENCY_EDGES)) for n in subgraph.nodes}
        ready = [self._priority(subgraph.get_node(i)) for i, d in in_degree.items() if d == 0]
        heapq.heapify(ready)
        emitted: list[tuple[str, bool]] = []
        remaining = set(in_degree)

        def release(node_id: str) -> None:
            remaining.discard(node_id)
            for edge in subgraph.outgoing(node_id, DEPENDENCY_EDGES):
                if edge.target_id not in remaining:
                    continue
                in_degree[edge.target_id] -= 1
                if in_degree[edge.target_id] == 0:
                    heapq.heappush(ready, self._priority(subgraph.get_node(edge.target_id)))

        while remaining:
            if ready:
                _, node_id = heapq.heappop(ready)
                if node_id not in remaining:
                    continue
                emitted.append((node_id, False))
                release(node_id)
                continue

            # Every remaining node waits on another: break the cycle
            node_id = min(remaining)
            self.logger.warning(
                "dependency_cycle_broken",
                resource_id=node_id,
                blocked_count=len(remaining),
            )
            emitted.append((node_id, True))
            in_degree[node_id] = 0
            release(node_id)

        return emitted

    @staticmethod
    def _priority(node: ResourceNode) -> tuple[int, str]:
        return TYPE_PRIORITY.get(node.resource_type.lower(), DEFAULT_TYPE_PRIORITY), node.id

    @staticmethod
    def _action(node: ResourceNode, graph: ResourceGraph, scenario: FailureScenario) -> str:
        """Recovery action text from resource type, protection and scenario."""
        kind = RESTORE_ACTIONS.get(node.resource_type.lower(), node.resource_type or "resource")
        name = node.display_name
        strategy = protection.backup_strategy(node, graph)

        if scenario == FailureScenario.DATA_CORRUPTION:
            if strategy == BackupStrategy.NONE:
                return f"Rebuild {kind} {name} and re-ingest data (no backup available)"
            return f"Restore {kind} {name} from the last backup taken before the corruption"

        if strategy in (BackupStrategy.REPLICATION, BackupStrategy.MULTI_REGION):
            return f"Fail over {kind} {name} to its replica"
        if strategy == BackupStrategy.SNAPSHOT:
            return f"Restore {kind} {name} from the latest backup"
        if node.resource_type.lower() in ("compute", "cluster"):
            return f"Launch replacement {kind} for {name}"
        return f"Recreate {kind} {name} from configuration (no backup available)"

    @staticmethod
    def _critical_path(steps: list[RecoveryStep]) -> int:
        """Longest duration-weighted chain through the step dependencies."""
        finish: dict[int, int] = {}
        for step in steps:
            start = max((finish[d] for d in step.depends_on), default=0)
            finish[step.order] = start + step.estimated_duration
        return max(finish.values(), default=0)

    @staticmethod
    def _layers(steps: list[RecoveryStep]) -> list[list[str]]:
        """Group steps by dependency depth; each group can recover in parallel."""
        depth: dict[int, int] = {}
        groups: list[list[str]] = []
        for step in steps:
            level = max((depth[d] + 1 for d in step.depends_on), default=0)
            depth[step.order] = level
            while len(groups) <= level:
                groups.append([])
            groups[level].append(step.resource_id)
        return groups


def _flagged_manual(node: ResourceNode) -> bool:
    value = protection.metadata_value(node, "manual_recovery", "manualRecovery")
    return str(value).lower() in ("true", "1", "yes")
