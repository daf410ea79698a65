"""
Quintile scoring for Recency-Frequency-Value.

Each metric is scored against the whole customer population: a value's
percentile is the share of the population strictly below it, and the
percentile is bucketed into 1-5. Recency is inverted so fewer days since
the last purchase scores higher. No DB access.
"""

from typing import List, Sequence, Tuple

import numpy as np

TIE_BREAKING_MIN = "min"
TIE_BREAKING_DENSE = "dense"

# Percentile cut points, highest bucket first.
_DIRECT_CUTS: Tuple[float, ...] = (80.0, 60.0, 40.0, 20.0)
_INVERTED_CUTS: Tuple[float, ...] = (20.0, 40.0, 60.0, 80.0)


def percentile_positions(values: Sequence[float], tie_breaking: str = TIE_BREAKING_MIN) -> np.ndarray:
    """
    Percentile (0-100) of each value within ``values``.

    Args:
        values:       Raw metric values for the whole population.
        tie_breaking: ``"min"`` places equal values at the position of their
                      first occurrence in the ascending sort; ``"dense"``
                      ranks over distinct values only.

    Returns:
        Float array aligned with ``values``.
    """
    array = np.asarray(values, dtype=float)
    if array.size == 0:
        return np.zeros(0, dtype=float)

    if tie_breaking == TIE_BREAKING_DENSE:
        reference = np.unique(array)
    elif tie_breaking == TIE_BREAKING_MIN:
        reference = np.sort(array, kind="mergesort")
    else:
        raise ValueError(f"Unknown tie_breaking mode: {tie_breaking!r}")

    positions = np.searchsorted(reference, array, side="left")
    return positions / reference.size * 100.0


def score_direct(percentiles: np.ndarray) -> np.ndarray:
    """Higher percentile -> higher score (frequency, value)."""
    conditions = [percentiles >= cut for cut in _DIRECT_CUTS]
    return np.select(conditions, [5, 4, 3, 2], default=1).astype(int)


def score_inverted(percentiles: np.ndarray) -> np.ndarray:
    """Lower percentile -> higher score (recency in days)."""
    conditions = [percentiles <= cut for cut in _INVERTED_CUTS]
    return np.select(conditions, [5, 4, 3, 2], default=1).astype(int)


class RFVScorer:
    """
    Scores a population of (days_since_last_purchase, purchases, value) triples.

    Args:
        tie_breaking: Passed to :func:`percentile_positions`.
    """

    def __init__(self, tie_breaking: str = TIE_BREAKING_MIN) -> None:
        if tie_breaking not in (TIE_BREAKING_MIN, TIE_BREAKING_DENSE):
            raise ValueError(f"Unknown tie_breaking mode: {tie_breaking!r}")
        self._tie_breaking = tie_breaking

    def score(
        self,
        recency_days: Sequence[float],
        frequencies: Sequence[float],
        values: Sequence[float],
    ) -> List[Tuple[int, int, int]]:
        """
        Returns:
            One ``(r, f, v)`` tuple per customer, each score in ``[1, 5]``.

        Raises:
            ValueError: If the three sequences differ in length.
        """
        if not (len(recency_days) == len(frequencies) == len(values)):
            raise ValueError("recency, frequency and value sequences must have equal length")

        recency_scores = score_inverted(percentile_positions(recency_days, self._tie_breaking))
        frequency_scores = score_direct(percentile_positions(frequencies, self._tie_breaking))
        value_scores = score_direct(percentile_positions(values, self._tie_breaking))
        return [
            (int(r), int(f), int(v))
            for r, f, v in zip(recency_scores, frequency_scores, value_scores)
        ]
