"""
Incident normalization and correlation.

- normalizer: provider payloads to canonical incidents
- correlator: union-find grouping by shared resource and proximity
- aggregator: summary, timeline, triage and filtering views
"""

from resilience.engine.incidents.aggregator import IncidentAggregator
from resilience.engine.incidents.correlator import IncidentCorrelator
from resilience.engine.incidents.normalizer import IncidentNormalizer

__all__ = ["IncidentAggregator", "IncidentCorrelator", "IncidentNormalizer"]
