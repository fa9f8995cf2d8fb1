"""Poisson goal-model helpers."""

from typing import Tuple

import numpy as np

# Defer scipy import for faster module load
_stats = None


def _get_stats():
    """Lazy import of scipy.stats."""
    global _stats
    if _stats is None:
        from scipy import stats
        _stats = stats
    return _stats


def over_probability(expected_total: float, line: float = 2.5) -> float:
    """P(total goals > line) for a Poisson total with mean ``expected_total``."""
    if expected_total <= 0:
        return 0.0
    return float(1.0 - _get_stats().poisson.cdf(int(np.floor(line)), expected_total))


def score_matrix(home_expected: float, away_expected: float, max_goals: int = 5) -> np.ndarray:
    """Independent-Poisson scoreline probabilities; rows are home goals."""
    goals = np.arange(max_goals + 1)
    poisson = _get_stats().poisson
    home = poisson.pmf(goals, max(home_expected, 1e-9))
    away = poisson.pmf(goals, max(away_expected, 1e-9))
    return np.outer(home, away)


def most_likely_score(home_expected: float, away_expected: float, max_goals: int = 5) -> Tuple[int, int]:
    matrix = score_matrix(home_expected, away_expected, max_goals)
    home, away = np.unravel_index(int(np.argmax(matrix)), matrix.shape)
    return int(home), int(away)
