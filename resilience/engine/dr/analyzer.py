"""
DR Posture Analyzer

Scans a resource graph snapshot for disaster-recovery weaknesses and scores
the overall posture.

Scoring Components (each normalised to [0, 1]):
    - Backup coverage: critical resources with a backup strategy other than "none"
    - Replication breadth: critical resources with a replica (any replication
      status other than "none", or a cross-region replica or failover target)
    - SPOF penalty: 1 / (1 + number of single points of failure)
    - Cross-region distribution: replicated share of the footprint plus the
      normalised entropy of single-copy resources per provider region
    - Recovery-plan existence: critical resources already covered by a recovery plan

A resource is critical when the criticality predicate says so or when it
is a single point of failure. A single point of failure is a resource that
other resources depend on, that has no peer of the same type in the same
provider region, and that neither replicates nor fails over anywhere.

Example:
    >>> analyzer = DRAnalyzer()
    >>> analysis = analyzer.analyze(ResourceGraph(nodes, edges))
    >>> print(analysis.overall_score, analysis.grade)
"""

from collections import Counter, defaultdict
from typing import Iterable, Optional

import structlog

from resilience.engine.dr import protection
from resilience.engine.dr.protection import (
    DEPENDENCY_EDGES,
    FAILOVER_EDGES,
    MONITORING_EDGES,
    REPLICATION_EDGES,
    CriticalityPredicate,
    default_criticality,
)
from resilience.engine.dr.scoring import (
    coverage_ratio,
    distribution_evenness,
    grade_from_score,
    spof_signal,
    weighted_score,
)
from resilience.engine.graph import ResourceGraph
from resilience.models.dr import (
    DRAnalysis,
    DRRecommendation,
    DRScoringWeights,
    SingleRegionRisk,
)
from resilience.models.enums import (
    BackupStrategy,
    Effort,
    RecommendationCategory,
    ReplicationStatus,
    RiskLevel,
)
from resilience.models.graph import ResourceNode

logger = structlog.get_logger()

RISK_ORDER = {
    RiskLevel.CRITICAL: 0,
    RiskLevel.HIGH: 1,
    RiskLevel.MEDIUM: 2,
    RiskLevel.LOW: 3,
}

# Share of a resource's monthly cost assumed for adding protection
PROTECTION_COST_RATIO = 0.25

DEFAULT_COSTS = {
    RecommendationCategory.BACKUP: 50.0,
    RecommendationCategory.FAILOVER: 200.0,
    RecommendationCategory.REDUNDANCY: 100.0,
    RecommendationCategory.MONITORING: 20.0,
}

DISTRIBUTION_THRESHOLD = 0.5


def _region_key(node: ResourceNode) -> tuple[str, str]:
    return node.provider.value, node.region


class DRAnalyzer:
    """
    Scores DR posture and produces findings and recommendations.

    Pure with respect to its inputs: the same graph, weights and plan
    coverage always produce the same analysis.

    Attributes:
        weights: Relative weights of the posture signals
        is_critical: Criticality predicate applied to every node
    """

    def __init__(
        self,
        weights: Optional[DRScoringWeights] = None,
        criticality: Optional[CriticalityPredicate] = None,
    ):
        """
        Initialize the analyzer.

        Args:
            weights: Signal weights (defaults to DRScoringWeights())
            criticality: Predicate marking critical resources (defaults to
                resource-type and tag based ``default_criticality``)
        """
        self.weights = weights or DRScoringWeights()
        self.is_critical = criticality or default_criticality
        self.logger = structlog.get_logger()

    def analyze(
        self,
        graph: ResourceGraph,
        planned_resource_ids: Optional[Iterable[str]] = None,
    ) -> DRAnalysis:
        """
        Analyze the DR posture of a graph snapshot.

        Args:
            graph: Resource graph snapshot
            planned_resource_ids: Resources already covered by a recovery
                plan, or None when that information is unavailable

        Returns:
            DRAnalysis with score, grade, findings and recommendations
        """
        planned = set(planned_resource_ids) if planned_resource_ids is not None else None

        self.logger.info(
            "dr_analysis_started",
            node_count=len(graph),
            edge_count=len(graph.resolved_edges),
            plan_coverage_known=planned is not None,
        )

        spofs = self.find_single_points_of_failure(graph)
        critical = self.critical_resources(graph, spofs)
        unprotected = self.find_unprotected_critical(graph, critical)
        region_risks = self.find_single_region_risks(graph, critical)
        signals = self.compute_signals(graph, critical, spofs, planned)

        score = weighted_score(signals, self.weights)
        grade = grade_from_score(score)

        recommendations = self.generate_recommendations(
            graph=graph,
            critical=critical,
            spofs=spofs,
            unprotected=unprotected,
            region_risks=region_risks,
            distribution=signals["cross_region"],
            planned=planned,
        )

        analysis = DRAnalysis(
            overall_score=score,
            grade=grade,
            signals={k: round(v, 4) for k, v in signals.items() if v is not None},
            single_region_risks=region_risks,
            unprotected_critical_resources=unprotected,
            single_points_of_failure=spofs,
            recovery_time_estimates=self.estimate_recovery_times(graph),
            recommendations=recommendations,
        )

        self.logger.info(
            "dr_analysis_complete",
            score=score,
            grade=grade.value,
            critical_count=len(critical),
            unprotected_count=len(unprotected),
            spof_count=len(spofs),
            recommendation_count=len(recommendations),
        )

        return analysis

    def find_single_points_of_failure(self, graph: ResourceGraph) -> list[str]:
        """
        Detect resources whose loss has no redundant substitute.

        A node is a SPOF when at least one resolved dependency edge leads
        from it to a dependent, no other node shares its provider, region
        and resource type, and it has no replication or failover target.
        """
        peers = Counter(
            (n.provider, n.region, n.resource_type.lower()) for n in graph.nodes
        )

        spofs = []
        for node in graph.nodes:
            dependents = graph.neighbors(node.id, DEPENDENCY_EDGES)
            if not dependents:
                continue
            if peers[(node.provider, node.region, node.resource_type.lower())] > 1:
                continue
            if graph.outgoing(node.id, REPLICATION_EDGES | FAILOVER_EDGES):
                continue
            if protection.failover_capable(node, graph):
                continue
            spofs.append(node.id)

        if spofs:
            self.logger.debug("single_points_of_failure_detected", spofs=spofs[:10])
        return spofs

    def critical_resources(
        self, graph: ResourceGraph, spofs: Iterable[str] = ()
    ) -> list[ResourceNode]:
        """Nodes marked critical by the predicate, plus all SPOFs."""
        spof_set = set(spofs)
        return [n for n in graph.nodes if n.id in spof_set or self.is_critical(n)]

    def find_unprotected_critical(
        self, graph: ResourceGraph, critical: list[ResourceNode]
    ) -> list[ResourceNode]:
        """Critical resources with neither backup nor replication."""
        return [
            n for n in critical
            if protection.backup_strategy(n, graph) == BackupStrategy.NONE
        ]

    def find_single_region_risks(
        self, graph: ResourceGraph, critical: list[ResourceNode]
    ) -> list[SingleRegionRisk]:
        """
        One risk finding per provider region, riskiest first.

        Risk level:
            critical resources, no failover   -> critical (high if all backed up)
            critical resources, with failover -> medium (low if all backed up)
            no critical resources             -> medium without failover, else low
        """
        by_region: dict[tuple[str, str], list[ResourceNode]] = defaultdict(list)
        for node in graph.nodes:
            by_region[_region_key(node)].append(node)

        critical_ids = {n.id for n in critical}
        risks = []
        for (provider, region), nodes in by_region.items():
            regional_critical = [n for n in nodes if n.id in critical_ids]
            has_failover = any(
                protection.failover_capable(n, graph)
                or graph.outgoing(n.id, REPLICATION_EDGES)
                for n in nodes
            )
            backed_up = sum(
                1 for n in regional_critical
                if protection.backup_strategy(n, graph) != BackupStrategy.NONE
            )
            coverage = coverage_ratio(backed_up, len(regional_critical))

            risks.append(
                SingleRegionRisk(
                    region=region,
                    provider=provider,
                    critical_resources=len(regional_critical),
                    total_resources=len(nodes),
                    has_failover=has_failover,
                    risk_level=self._region_risk(len(regional_critical), has_failover, coverage),
                )
            )

        return sorted(risks, key=lambda r: (RISK_ORDER[r.risk_level], r.provider, r.region))

    @staticmethod
    def _region_risk(critical_count: int, has_failover: bool, coverage: float) -> RiskLevel:
        fully_backed_up = coverage >= 1.0
        if critical_count > 0 and not has_failover:
            return RiskLevel.HIGH if fully_backed_up else RiskLevel.CRITICAL
        if critical_count > 0:
            return RiskLevel.LOW if fully_backed_up else RiskLevel.MEDIUM
        return RiskLevel.LOW if has_failover else RiskLevel.MEDIUM

    def estimate_recovery_times(self, graph: ResourceGraph) -> dict[str, int]:
        """Estimated RTO in minutes for every node."""
        return {n.id: protection.recovery_time_minutes(n, graph) for n in graph.nodes}

    def compute_signals(
        self,
        graph: ResourceGraph,
        critical: list[ResourceNode],
        spofs: list[str],
        planned: Optional[set[str]] = None,
    ) -> dict[str, Optional[float]]:
        """
        Normalised posture signals.

        Returns:
            Signal name to value in [0, 1]; None marks an unavailable signal
        """
        backed_up = sum(
            1 for n in critical
            if protection.backup_strategy(n, graph) != BackupStrategy.NONE
        )
        replicated = sum(
            1 for n in critical
            if protection.replication_status(n, graph) != ReplicationStatus.NONE
            or protection.is_cross_region_replicated(n, graph)
        )

        plan_signal = None
        if planned is not None:
            plan_signal = coverage_ratio(
                sum(1 for n in critical if n.id in planned), len(critical)
            )

        return {
            "backup_coverage": coverage_ratio(backed_up, len(critical)),
            "replication_breadth": coverage_ratio(replicated, len(critical)),
            "spof": spof_signal(len(spofs)),
            "cross_region": self.distribution_signal(graph),
            "recovery_plan": plan_signal,
        }

    def distribution_signal(self, graph: ResourceGraph) -> Optional[float]:
        """
        Regional spread of the footprint.

        Replicated resources already have a copy to fail over to and count
        as distributed; the rest contribute the normalised entropy of their
        counts per provider region. None for an empty graph.
        """
        if len(graph) == 0:
            return None
        single_copy = [
            n for n in graph.nodes
            if protection.replication_status(n, graph) == ReplicationStatus.NONE
            and not protection.is_cross_region_replicated(n, graph)
        ]
        replicated_share = 1.0 - len(single_copy) / len(graph)
        if not single_copy:
            return 1.0
        evenness = distribution_evenness(
            Counter(f"{p}:{r}" for p, r in map(_region_key, single_copy))
        )
        return replicated_share + (1.0 - replicated_share) * (evenness or 0.0)

    def generate_recommendations(
        self,
        graph: ResourceGraph,
        critical: list[ResourceNode],
        spofs: list[str],
        unprotected: list[ResourceNode],
        region_risks: list[SingleRegionRisk],
        distribution: Optional[float],
        planned: Optional[set[str]] = None,
    ) -> list[DRRecommendation]:
        """
        Rule-triggered recommendations, most severe first.

        Rules:
            backup: one per unprotected critical resource
            failover: one per region at critical risk
            redundancy: one per single point of failure
            distribution: resources concentrated in few regions
            monitoring: critical resources without a monitoring edge
            recovery-plan: critical resources missing from the plan set
        """
        recs: list[DRRecommendation] = []

        for node in unprotected:
            recs.append(
                DRRecommendation(
                    severity=RiskLevel.CRITICAL if self.is_critical(node) else RiskLevel.HIGH,
                    category=RecommendationCategory.BACKUP,
                    description=(
                        f"{node.display_name} ({node.resource_type}) has no backup "
                        "or replication configured"
                    ),
                    affected_resources=[node.id],
                    estimated_cost=_estimate_cost([node], RecommendationCategory.BACKUP),
                    effort=Effort.MEDIUM,
                )
            )

        critical_by_region: dict[tuple[str, str], list[ResourceNode]] = defaultdict(list)
        for node in critical:
            critical_by_region[_region_key(node)].append(node)

        for risk in region_risks:
            if risk.risk_level != RiskLevel.CRITICAL:
                continue
            regional = critical_by_region[(risk.provider, risk.region)]
            recs.append(
                DRRecommendation(
                    severity=RiskLevel.CRITICAL,
                    category=RecommendationCategory.FAILOVER,
                    description=(
                        f"Region {risk.region} ({risk.provider}) has "
                        f"{risk.critical_resources} critical resources with no failover"
                    ),
                    affected_resources=[n.id for n in regional],
                    estimated_cost=_estimate_cost(regional, RecommendationCategory.FAILOVER),
                    effort=Effort.HIGH,
                )
            )

        for spof_id in spofs:
            node = graph.get_node(spof_id)
            dependents = graph.neighbors(spof_id, DEPENDENCY_EDGES)
            recs.append(
                DRRecommendation(
                    severity=RiskLevel.HIGH,
                    category=RecommendationCategory.REDUNDANCY,
                    description=(
                        f"{node.display_name} is a single point of failure for "
                        f"{len(dependents)} dependent resource(s)"
                    ),
                    affected_resources=[spof_id] + dependents,
                    estimated_cost=_estimate_cost([node], RecommendationCategory.REDUNDANCY),
                    effort=Effort.MEDIUM,
                )
            )

        if distribution is not None and distribution < DISTRIBUTION_THRESHOLD and len(graph) > 1:
            recs.append(
                DRRecommendation(
                    severity=RiskLevel.MEDIUM,
                    category=RecommendationCategory.DISTRIBUTION,
                    description=(
                        "Resources are concentrated in few regions "
                        f"(distribution evenness {distribution:.2f})"
                    ),
                    affected_resources=[n.id for n in critical],
                    effort=Effort.HIGH,
                )
            )

        if graph.relationship_types() & MONITORING_EDGES:
            monitored = {
                endpoint
                for e in graph.resolved_edges
                if e.relationship_type in MONITORING_EDGES
                for endpoint in (e.source_id, e.target_id)
            }
            unmonitored = [n for n in critical if n.id not in monitored]
            if unmonitored:
                recs.append(
                    DRRecommendation(
                        severity=RiskLevel.HIGH,
                        category=RecommendationCategory.MONITORING,
                        description=f"{len(unmonitored)} critical resources lack monitoring",
                        affected_resources=[n.id for n in unmonitored],
                        estimated_cost=DEFAULT_COSTS[RecommendationCategory.MONITORING],
                        effort=Effort.LOW,
                    )
                )

        if planned is not None:
            missing = [n for n in critical if n.id not in planned]
            if missing:
                recs.append(
                    DRRecommendation(
                        severity=RiskLevel.MEDIUM,
                        category=RecommendationCategory.RECOVERY_PLAN,
                        description=(
                            f"{len(missing)} critical resources are not covered by a recovery plan"
                        ),
                        affected_resources=[n.id for n in missing],
                        effort=Effort.LOW,
                    )
                )

        return sorted(recs, key=lambda r: RISK_ORDER[r.severity])


def _estimate_cost(nodes: list[ResourceNode], category: RecommendationCategory) -> float:
    known = [n.cost_monthly for n in nodes if n.cost_monthly is not None]
    if not known:
        return DEFAULT_COSTS[category]
    return round(sum(known) * PROTECTION_COST_RATIO, 2)
