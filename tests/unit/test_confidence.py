"""Unit tests for entropy-based confidence calibration."""

import pytest

from matchcast.models.confidence import (
    ConfidenceCalibrator,
    ConfidenceFactors,
    apply_confidence_curve,
    calibrate,
    completeness_factor,
    confidence_level,
    explain,
    format_confidence_percentage,
    normalized_entropy,
    raw_confidence,
    recency_factor,
    sharpness,
)


class TestEntropy:
    def test_uniform_is_maximal(self):
        assert normalized_entropy([1 / 3, 1 / 3, 1 / 3]) == pytest.approx(1.0)
        assert sharpness([1 / 3, 1 / 3, 1 / 3]) == pytest.approx(0.0)

    def test_certain_outcome_has_no_entropy(self):
        assert normalized_entropy([1.0, 0.0, 0.0]) == pytest.approx(0.0)

    def test_degenerate_input_counts_as_uncertain(self):
        assert normalized_entropy([0.0, 0.0, 0.0]) == 1.0


class TestCalibrate:
    def test_decisive_beats_uniform(self):
        factors = ConfidenceFactors()
        assert calibrate([0.8, 0.1, 0.1], factors) > calibrate([1 / 3, 1 / 3, 1 / 3], factors)

    @pytest.mark.parametrize("probabilities,factors", [
        ([1.0, 0.0, 0.0], ConfidenceFactors(1.0, 1.0, 1.0)),
        ([1 / 3, 1 / 3, 1 / 3], ConfidenceFactors(0.0, 0.0, 0.0)),
        ([0.5, 0.3, 0.2], ConfidenceFactors()),
    ])
    def test_output_bounds(self, probabilities, factors):
        assert 0.2 <= calibrate(probabilities, factors) <= 0.9

    def test_raw_is_clamped(self):
        assert raw_confidence([1 / 3, 1 / 3, 1 / 3], ConfidenceFactors(0, 0, 0)) == 0.1
        assert raw_confidence([1.0, 0.0, 0.0], ConfidenceFactors(1, 1, 1)) == 0.95

    def test_curve_midpoint(self):
        assert apply_confidence_curve(0.5) == pytest.approx(0.55)

    def test_better_factors_raise_confidence(self):
        probabilities = [0.5, 0.3, 0.2]
        low = calibrate(probabilities, ConfidenceFactors(0.3, 0.3, 0.3))
        high = calibrate(probabilities, ConfidenceFactors(1.0, 1.0, 1.0))
        assert high > low


class TestFactors:
    def test_recency_decays(self):
        assert recency_factor(0) == 1.0
        assert recency_factor(12) > recency_factor(36)

    def test_completeness(self):
        assert completeness_factor(3, 10, 5) == 0.3
        assert completeness_factor(8, 10, 5) == pytest.approx(0.8)
        assert completeness_factor(15, 10, 5) == 1.0


class TestPresentation:
    def test_explain_orders_sharpness_first(self):
        reasons = explain([0.95, 0.03, 0.02], ConfidenceFactors(0.9, 0.9, 0.9))
        assert reasons[0] == "Clear-cut prediction with low uncertainty"
        assert "Based on fresh data" in reasons
        assert "Model has a strong track record" in reasons

    def test_explain_flags_weak_data(self):
        reasons = explain([1 / 3, 1 / 3, 1 / 3], ConfidenceFactors(0.4, 0.5, 0.5))
        assert reasons[0] == "High uncertainty, evenly matched sides"
        assert "Based on limited data" in reasons

    def test_levels(self):
        assert confidence_level(0.85)[0] == "very_high"
        assert confidence_level(0.7)[0] == "high"
        assert confidence_level(0.5)[0] == "medium"
        assert confidence_level(0.2)[0] == "low"

    def test_percentage(self):
        assert format_confidence_percentage(0.456) == "46%"

    def test_facade(self):
        assert ConfidenceCalibrator.calibrate([0.6, 0.2, 0.2]) == calibrate([0.6, 0.2, 0.2])
