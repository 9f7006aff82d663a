"""
Cloud resilience analysis engines.

This package contains the analytical components that operate on immutable
snapshots:

- Resource graph: identifier-indexed nodes and typed edges
- DR analysis: posture scoring, findings and recommendations
- Recovery planning: dependency-ordered plans per failure scenario
- Incident normalization: provider payloads to canonical incidents
- Incident correlation and aggregation: grouping and summary views

All engine components are synchronous and side-effect free apart from
structured logging, and receive their collaborators (criticality
predicate, clock, identifier generator) through their constructors.
"""

__all__ = [
    "ResourceGraph",
    "DRAnalyzer",
    "RecoveryPlanner",
    "IncidentNormalizer",
    "IncidentCorrelator",
    "IncidentAggregator",
]

from resilience.engine.dr import DRAnalyzer, RecoveryPlanner
from resilience.engine.graph import ResourceGraph
from resilience.engine.incidents import IncidentAggregator, IncidentCorrelator, IncidentNormalizer
