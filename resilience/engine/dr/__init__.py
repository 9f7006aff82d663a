"""
Disaster-recovery analysis.

- protection: per-resource backup, replication and RTO/RPO heuristics
- scoring: signal normalisation, weighted score and grade table
- analyzer: DR posture analysis, findings and recommendations
- planner: dependency-ordered recovery plans for failure scenarios
"""

from resilience.engine.dr.analyzer import DRAnalyzer
from resilience.engine.dr.planner import RecoveryPlanner
from resilience.engine.dr.scoring import grade_from_score

__all__ = ["DRAnalyzer", "RecoveryPlanner", "grade_from_score"]
