"""
Unit tests for DR posture analysis: scoring helpers, protection heuristics
and the DRAnalyzer findings and recommendations.

Default criticality predicate under test: a resource is critical when its
type is database, storage, queue, stream, cache, cluster or compute, when a
criticality/tier/priority tag or metadata value equals "critical", or when it
carries a truthy "critical" tag. Single points of failure are always treated
as critical.
"""

from datetime import datetime, timedelta, timezone

import pytest

from resilience.engine.dr import DRAnalyzer
from resilience.engine.dr import protection
from resilience.engine.dr.scoring import (
    coverage_ratio,
    distribution_evenness,
    grade_from_score,
    spof_signal,
    weighted_score,
)
from resilience.engine.graph import ResourceGraph
from resilience.models.dr import DRScoringWeights
from resilience.models.enums import (
    BackupStrategy,
    Grade,
    RecommendationCategory,
    ReplicationStatus,
    RiskLevel,
)
from tests.conftest import make_edge, make_node


# ============================================================================
# Scoring helpers
# ============================================================================


class TestGradeTable:
    """The grade thresholds are fixed."""

    @pytest.mark.parametrize(
        "score,grade",
        [
            (100.0, Grade.A),
            (90.0, Grade.A),
            (89.99, Grade.B),
            (75.0, Grade.B),
            (74.99, Grade.C),
            (60.0, Grade.C),
            (40.0, Grade.D),
            (39.99, Grade.F),
            (0.0, Grade.F),
        ],
    )
    def test_thresholds(self, score, grade):
        assert grade_from_score(score) == grade


class TestScoringHelpers:
    def test_coverage_ratio_empty_population_is_full(self):
        assert coverage_ratio(0, 0) == 1.0
        assert coverage_ratio(1, 4) == 0.25

    def test_spof_signal_decreases(self):
        assert spof_signal(0) == 1.0
        assert spof_signal(1) == 0.5
        assert spof_signal(3) < spof_signal(2)

    def test_distribution_evenness(self):
        assert distribution_evenness({}) is None
        assert distribution_evenness({"us-east-1": 7}) == 0.0
        assert distribution_evenness({"us-east-1": 3, "eu-west-1": 3}) == pytest.approx(1.0)
        assert 0.0 < distribution_evenness({"us-east-1": 9, "eu-west-1": 1}) < 1.0

    def test_weighted_score_drops_unavailable_signals(self):
        signals = {"backup_coverage": 1.0, "replication_breadth": None}
        assert weighted_score(signals, DRScoringWeights()) == 100.0

    def test_weighted_score_all_unavailable(self):
        assert weighted_score({"spof": None}, DRScoringWeights()) == 100.0

    def test_weighted_score_normalises_weights(self):
        signals = {"backup_coverage": 1.0, "spof": 0.0}
        weights = DRScoringWeights(backup_coverage=3.0, spof=1.0)
        assert weighted_score(signals, weights) == 75.0

    def test_zero_weights_fall_back_to_mean(self):
        weights = DRScoringWeights(
            backup_coverage=0, replication_breadth=0, spof=0, cross_region=0, recovery_plan=0
        )
        signals = {"backup_coverage": 1.0, "spof": 0.5}
        assert weighted_score(signals, weights) == 75.0


# ============================================================================
# Protection heuristics
# ============================================================================


class TestDefaultCriticality:
    def test_critical_types(self):
        assert protection.default_criticality(make_node("a", "database"))
        assert protection.default_criticality(make_node("a", "compute"))
        assert not protection.default_criticality(make_node("a", "load-balancer"))

    def test_critical_tags_and_metadata(self):
        assert protection.default_criticality(
            make_node("a", "dns", tags={"criticality": "Critical"})
        )
        assert protection.default_criticality(make_node("a", "dns", tags={"critical": "true"}))
        assert protection.default_criticality(make_node("a", "dns", metadata={"tier": "critical"}))
        assert not protection.default_criticality(make_node("a", "dns", tags={"critical": "no"}))


class TestProtection:
    def test_backup_strategy_from_edges(self):
        nodes = [make_node("db"), make_node("vault", "backup-vault"), make_node("replica")]
        snapshot = ResourceGraph(nodes, [make_edge("db", "vault", "backs-up")])
        replicated = ResourceGraph(nodes, [make_edge("db", "replica", "replicates-to")])
        both = ResourceGraph(
            nodes,
            [make_edge("db", "vault", "backs-up"), make_edge("db", "replica", "replicates-to")],
        )
        assert protection.backup_strategy(nodes[0], snapshot) == BackupStrategy.SNAPSHOT
        assert protection.backup_strategy(nodes[0], replicated) == BackupStrategy.REPLICATION
        assert protection.backup_strategy(nodes[0], both) == BackupStrategy.MULTI_REGION

    def test_metadata_overrides_edges(self):
        node = make_node("db", metadata={"backup_strategy": "snapshot", "replication_status": "active-active"})
        graph = ResourceGraph([node], [])
        assert protection.backup_strategy(node, graph) == BackupStrategy.SNAPSHOT
        assert protection.replication_status(node, graph) == ReplicationStatus.ACTIVE_ACTIVE
        assert protection.failover_capable(node, graph)

    def test_dangling_backup_edge_gives_no_protection(self):
        node = make_node("db")
        graph = ResourceGraph([node], [make_edge("db", "ghost-vault", "backs-up")])
        assert protection.backup_strategy(node, graph) == BackupStrategy.NONE

    def test_replication_status_sync_with_failover(self):
        nodes = [make_node("db"), make_node("replica", region="us-west-2")]
        graph = ResourceGraph(
            nodes,
            [make_edge("db", "replica", "replicates-to"), make_edge("db", "replica", "fails-over-to")],
        )
        assert protection.replication_status(nodes[0], graph) == ReplicationStatus.SYNC
        assert protection.is_cross_region_replicated(nodes[0], graph)

    def test_rto_and_rpo_estimates(self):
        assert protection.estimate_rto("database", BackupStrategy.NONE) == 180
        assert protection.estimate_rto("database", BackupStrategy.MULTI_REGION) == 12
        assert protection.estimate_rto("mystery", BackupStrategy.SNAPSHOT) == 30
        assert protection.estimate_rpo(ReplicationStatus.ASYNC) == 15
        assert protection.estimate_rpo(ReplicationStatus.NONE) == 1440

    def test_rpo_from_backup_age(self):
        as_of = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)
        node = make_node("db", metadata={"last_backup_at": (as_of - timedelta(minutes=90)).isoformat()})
        graph = ResourceGraph([node], [])
        assert protection.recovery_point_minutes(node, graph, as_of=as_of) == 90
        assert protection.recovery_point_minutes(node, graph) == 1440

    def test_declared_objectives_win(self):
        node = make_node("db", metadata={"rto_minutes": 7, "rpo_minutes": "5"})
        graph = ResourceGraph([node], [])
        requirement = protection.get_recovery_requirement(node, graph)
        assert requirement.rto == 7
        assert requirement.rpo == 5

    def test_parse_timestamp_formats(self):
        expected = datetime(2026, 10, 17, 8, 0, tzinfo=timezone.utc)
        assert protection.parse_timestamp("2026-10-17T08:00:00Z") == expected
        assert protection.parse_timestamp(int(expected.timestamp() * 1000)) == expected
        assert protection.parse_timestamp("2026-10-17T08:00:00") == expected
        assert protection.parse_timestamp("not a time") is None
        assert protection.parse_timestamp(None) is None


# ============================================================================
# DRAnalyzer
# ============================================================================


class TestDRAnalyzerEmptyInput:
    def test_empty_graph_is_neutral(self):
        analysis = DRAnalyzer().analyze(ResourceGraph([], []))
        assert analysis.overall_score == 100.0
        assert analysis.grade == Grade.A
        assert analysis.single_region_risks == []
        assert analysis.unprotected_critical_resources == []
        assert analysis.recommendations == []
        assert analysis.recovery_time_estimates == {}


class TestDRAnalyzerProtectedGraph:
    def test_full_coverage_scores_grade_a(self, protected_graph):
        analysis = DRAnalyzer().analyze(protected_graph)
        assert analysis.overall_score >= 90
        assert analysis.grade == Grade.A
        assert analysis.unprotected_critical_resources == []
        assert analysis.single_points_of_failure == []

    def test_full_coverage_in_single_region_still_grade_a(self):
        nodes = [make_node("db"), make_node("db-replica"), make_node("vault", "backup-vault")]
        edges = [
            make_edge("db", "db-replica", "replicates-to"),
            make_edge("db-replica", "db", "replicates-to"),
            make_edge("db", "vault", "backs-up"),
            make_edge("db-replica", "vault", "backs-up"),
        ]
        analysis = DRAnalyzer().analyze(ResourceGraph(nodes, edges))
        assert analysis.grade == Grade.A

    def test_region_risks_low_with_failover(self, protected_graph):
        analysis = DRAnalyzer().analyze(protected_graph)
        assert {r.region for r in analysis.single_region_risks} == {"us-east-1", "us-west-2"}
        assert all(r.has_failover for r in analysis.single_region_risks)
        assert all(r.risk_level == RiskLevel.LOW for r in analysis.single_region_risks)

    def test_no_recommendations(self, protected_graph):
        assert DRAnalyzer().analyze(protected_graph).recommendations == []


class TestDRAnalyzerUnprotectedStack:
    def test_single_points_of_failure(self, web_stack):
        analyzer = DRAnalyzer()
        assert analyzer.find_single_points_of_failure(web_stack) == ["orders-db", "api"]

    def test_peer_in_region_prevents_spof(self):
        nodes = [make_node("api-1", "compute"), make_node("api-2", "compute"), make_node("lb", "lb")]
        graph = ResourceGraph(nodes, [make_edge("api-1", "lb", "serves")])
        assert DRAnalyzer().find_single_points_of_failure(graph) == []

    def test_score_and_grade(self, web_stack):
        analysis = DRAnalyzer().analyze(web_stack)
        assert analysis.overall_score == pytest.approx(7.41, abs=0.01)
        assert analysis.grade == Grade.F

    def test_unprotected_critical(self, web_stack):
        analysis = DRAnalyzer().analyze(web_stack)
        assert [n.id for n in analysis.unprotected_critical_resources] == ["orders-db", "api"]

    def test_region_risk_critical_without_failover(self, web_stack):
        risks = DRAnalyzer().analyze(web_stack).single_region_risks
        assert len(risks) == 1
        assert risks[0].region == "us-east-1"
        assert risks[0].provider == "aws"
        assert risks[0].critical_resources == 2
        assert risks[0].total_resources == 3
        assert risks[0].risk_level == RiskLevel.CRITICAL

    def test_recovery_time_estimates(self, web_stack):
        estimates = DRAnalyzer().analyze(web_stack).recovery_time_estimates
        assert estimates == {"orders-db": 180, "api": 45, "lb": 90}

    def test_recommendations_by_rule(self, web_stack):
        recs = DRAnalyzer().analyze(web_stack).recommendations
        categories = [r.category for r in recs]
        assert categories.count(RecommendationCategory.BACKUP) == 2
        assert categories.count(RecommendationCategory.FAILOVER) == 1
        assert categories.count(RecommendationCategory.REDUNDANCY) == 2
        assert categories.count(RecommendationCategory.DISTRIBUTION) == 1
        assert RecommendationCategory.MONITORING not in categories

    def test_recommendations_sorted_by_severity(self, web_stack):
        recs = DRAnalyzer().analyze(web_stack).recommendations
        order = ["critical", "high", "medium", "low"]
        ranks = [order.index(r.severity.value) for r in recs]
        assert ranks == sorted(ranks)
        assert recs[0].severity == RiskLevel.CRITICAL

    def test_redundancy_recommendation_lists_dependents(self, web_stack):
        recs = DRAnalyzer().analyze(web_stack).recommendations
        db_rec = next(
            r for r in recs
            if r.category == RecommendationCategory.REDUNDANCY and r.affected_resources[0] == "orders-db"
        )
        assert db_rec.affected_resources == ["orders-db", "api"]

    def test_cost_estimate_uses_monthly_cost(self):
        graph = ResourceGraph([make_node("db", cost_monthly=400.0)], [])
        recs = DRAnalyzer().analyze(graph).recommendations
        backup = next(r for r in recs if r.category == RecommendationCategory.BACKUP)
        assert backup.estimated_cost == 100.0


class TestDRAnalyzerOptions:
    def test_custom_criticality_predicate(self):
        graph = ResourceGraph([make_node("db")], [])
        analysis = DRAnalyzer(criticality=lambda node: False).analyze(graph)
        assert analysis.unprotected_critical_resources == []
        assert analysis.signals["backup_coverage"] == 1.0

    def test_custom_weights(self, web_stack):
        weights = DRScoringWeights(
            backup_coverage=1.0, replication_breadth=0, spof=0, cross_region=0, recovery_plan=0
        )
        analysis = DRAnalyzer(weights=weights).analyze(web_stack)
        assert analysis.overall_score == 0.0

    def test_planned_resources_feed_signal_and_recommendation(self, web_stack):
        analysis = DRAnalyzer().analyze(web_stack, planned_resource_ids=["orders-db"])
        assert analysis.signals["recovery_plan"] == 0.5
        plan_rec = next(
            r for r in analysis.recommendations
            if r.category == RecommendationCategory.RECOVERY_PLAN
        )
        assert plan_rec.affected_resources == ["api"]

    def test_recovery_plan_signal_absent_without_plan_data(self, web_stack):
        analysis = DRAnalyzer().analyze(web_stack)
        assert "recovery_plan" not in analysis.signals

    def test_monitoring_gap(self):
        nodes = [make_node("db"), make_node("api", "compute", region="eu-west-1"), make_node("mon", "monitor")]
        edges = [make_edge("mon", "db", "monitors")]
        recs = DRAnalyzer().analyze(ResourceGraph(nodes, edges)).recommendations
        monitoring = next(r for r in recs if r.category == RecommendationCategory.MONITORING)
        assert monitoring.affected_resources == ["api"]

    def test_analysis_is_deterministic(self, web_stack):
        first = DRAnalyzer().analyze(web_stack)
        second = DRAnalyzer().analyze(web_stack)
        assert first.model_dump() == second.model_dump()
