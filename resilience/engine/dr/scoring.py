"""
DR posture scoring.

Combines normalised signals into a 0-100 score and maps the score onto
the fixed grade table:

    score >= 90 -> A
    score >= 75 -> B
    score >= 60 -> C
    score >= 40 -> D
    otherwise   -> F

Signals that could not be computed (None) are left out and the remaining
weights are renormalised, so a missing input lowers confidence in the
score rather than the score itself.
"""

from typing import Mapping, Optional

import numpy as np

from resilience.models.dr import DRScoringWeights
from resilience.models.enums import Grade

GRADE_THRESHOLDS: tuple[tuple[float, Grade], ...] = (
    (90.0, Grade.A),
    (75.0, Grade.B),
    (60.0, Grade.C),
    (40.0, Grade.D),
)


def grade_from_score(score: float) -> Grade:
    """Map a posture score onto the fixed letter grade table."""
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return Grade.F


def clamp_unit(value: float) -> float:
    """Clamp a value into [0, 1], mapping NaN to 0."""
    if value != value:
        return 0.0
    return float(min(1.0, max(0.0, value)))


def coverage_ratio(covered: int, total: int) -> float:
    """Covered fraction; an empty population counts as fully covered."""
    if total <= 0:
        return 1.0
    return clamp_unit(covered / total)


def spof_signal(spof_count: int) -> float:
    """Inverse of the SPOF count: 1.0 with none, 0.5 with one, 0.33 with two, ..."""
    return 1.0 / (1.0 + max(0, spof_count))


def distribution_evenness(counts: Mapping[str, int]) -> Optional[float]:
    """
    Normalised Shannon entropy of resource counts per location.

    Returns 1.0 for a perfectly even spread, 0.0 when everything sits in a
    single location, and None when there is nothing to measure.
    """
    values = np.array([c for c in counts.values() if c > 0], dtype=float)
    if values.size == 0:
        return None
    if values.size == 1:
        return 0.0
    probabilities = values / values.sum()
    entropy = -float(np.sum(probabilities * np.log(probabilities)))
    return clamp_unit(entropy / np.log(values.size))


def weighted_score(
    signals: Mapping[str, Optional[float]],
    weights: DRScoringWeights,
) -> float:
    """
    Weighted posture score in [0, 100].

    Args:
        signals: Signal name to value in [0, 1], or None when unavailable
        weights: Relative signal weights

    Returns:
        Score rounded to two decimals
    """
    available = {name: value for name, value in signals.items() if value is not None}
    if not available:
        return 100.0

    weight_map = weights.as_dict()
    total_weight = sum(weight_map.get(name, 0.0) for name in available)
    if total_weight <= 0:
        # All applicable weights are zero: fall back to an unweighted mean
        score = sum(clamp_unit(v) for v in available.values()) / len(available)
    else:
        score = sum(
            weight_map.get(name, 0.0) * clamp_unit(value)
            for name, value in available.items()
        ) / total_weight

    return round(min(100.0, max(0.0, score * 100.0)), 2)
