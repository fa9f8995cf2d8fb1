"""Entropy-based confidence calibration.

Turns an outcome probability triple and data-quality factors into one
calibrated confidence in [0.2, 0.9]. All functions are pure.
"""

from dataclasses import dataclass
from typing import List, Sequence, Tuple
import math

import numpy as np

RAW_MIN = 0.1
RAW_MAX = 0.95
CURVE_STEEPNESS = 6.0
CURVE_FLOOR = 0.2
CURVE_RANGE = 0.7

SHARPNESS_WEIGHT = 0.4
FACTOR_WEIGHT = 0.2


@dataclass(frozen=True)
class ConfidenceFactors:
    recency: float = 0.8
    completeness: float = 0.7
    accuracy: float = 0.75


def normalized_entropy(probabilities: Sequence[float]) -> float:
    """Shannon entropy in bits divided by log2(n). Degenerate input counts as maximal."""
    values = np.clip(np.asarray(list(probabilities), dtype=float), 0.0, None)
    total = values.sum()
    if total <= 0 or len(values) < 2:
        return 1.0
    p = values / total
    p = p[p > 0]
    entropy = float(-(p * np.log2(p)).sum())
    return entropy / math.log2(len(values))


def sharpness(probabilities: Sequence[float]) -> float:
    return 1.0 - normalized_entropy(probabilities)


def apply_confidence_curve(raw: float) -> float:
    """Logistic squash centered at 0.5, remapped into [0.2, 0.9]."""
    x = (raw - 0.5) * CURVE_STEEPNESS
    sigmoid = 1.0 / (1.0 + math.exp(-x))
    return CURVE_FLOOR + sigmoid * CURVE_RANGE


def raw_confidence(probabilities: Sequence[float], factors: ConfidenceFactors) -> float:
    raw = (
        SHARPNESS_WEIGHT * sharpness(probabilities)
        + FACTOR_WEIGHT * factors.recency
        + FACTOR_WEIGHT * factors.completeness
        + FACTOR_WEIGHT * factors.accuracy
    )
    return min(RAW_MAX, max(RAW_MIN, raw))


def calibrate(probabilities: Sequence[float], factors: ConfidenceFactors = ConfidenceFactors()) -> float:
    return apply_confidence_curve(raw_confidence(probabilities, factors))


def recency_factor(age_hours: float, max_age_hours: float = 24.0) -> float:
    """1.0 for fresh data, decaying exponentially with age."""
    if age_hours <= 0:
        return 1.0
    capped = min(age_hours, max_age_hours * 2)
    return math.exp(-0.1 * capped / max_age_hours)


def completeness_factor(available: int, total: int = 11, minimum: int = 5) -> float:
    if available < minimum:
        return 0.3
    return min(1.0, available / total)


def explain(probabilities: Sequence[float], factors: ConfidenceFactors = ConfidenceFactors()) -> List[str]:
    """Human-readable reasons, sharpness first."""
    explanations = []
    sharp = sharpness(probabilities)
    if sharp > 0.7:
        explanations.append("Clear-cut prediction with low uncertainty")
    elif sharp > 0.4:
        explanations.append("Moderate uncertainty in the outcome")
    else:
        explanations.append("High uncertainty, evenly matched sides")

    if factors.recency > 0.8:
        explanations.append("Based on fresh data")
    elif factors.recency < 0.5:
        explanations.append("Older data, treat with caution")

    if factors.completeness > 0.8:
        explanations.append("Complete dataset available")
    elif factors.completeness < 0.6:
        explanations.append("Based on limited data")

    if factors.accuracy > 0.8:
        explanations.append("Model has a strong track record")
    elif factors.accuracy < 0.6:
        explanations.append("Model accuracy still improving")
    return explanations


def confidence_level(confidence: float) -> Tuple[str, str]:
    if confidence >= 0.8:
        return "very_high", "Very high"
    if confidence >= 0.65:
        return "high", "High"
    if confidence >= 0.45:
        return "medium", "Medium"
    return "low", "Low"


def format_confidence_percentage(confidence: float) -> str:
    return f"{round(confidence * 100)}%"


class ConfidenceCalibrator:
    """Stateless facade bundling the calibration functions."""

    calibrate = staticmethod(calibrate)
    explain = staticmethod(explain)
    sharpness = staticmethod(sharpness)
    normalized_entropy = staticmethod(normalized_entropy)
    recency_factor = staticmethod(recency_factor)
    completeness_factor = staticmethod(completeness_factor)
    confidence_level = staticmethod(confidence_level)
