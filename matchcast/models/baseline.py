"""Client-side baseline prediction from match history.

Used when the prediction provider has nothing for a pair. The outcome
split is a bounded heuristic on expected-goal shares, not a Poisson CDF.
"""

from typing import Optional, Sequence, Tuple
import math

from matchcast import constants
from matchcast.features.extractor import FeatureExtractor, clamp, key_factors
from matchcast.models.confidence import ConfidenceFactors, calibrate, completeness_factor
from matchcast.schema import (
    Match,
    PredictedScore,
    Prediction,
    PredictionFeatures,
    Provenance,
    normalize_probabilities,
)

MODEL_TYPE = "baseline"


def form_factor(home_form: float, away_form: float) -> float:
    if away_form <= 0:
        return 1.5 if home_form > 0 else 1.0
    return clamp(home_form / away_form, 0.5, 1.5)


def expected_goals(features: PredictionFeatures) -> Tuple[float, float]:
    """Form-adjusted expected goals for (home, away)."""
    home_expected = 0.6 * features.home_goals_scored + 0.4 * features.away_goals_conceded
    away_expected = 0.6 * features.away_goals_scored + 0.4 * features.home_goals_conceded
    factor = form_factor(features.home_team_form, features.away_team_form)
    return home_expected * factor, away_expected / factor


def outcome_probabilities(home_expected: float, away_expected: float) -> Tuple[float, float, float]:
    total = home_expected + away_expected
    home_share = home_expected / total if total > 0 else 0.5
    home = clamp(home_share * 1.2, 0.1, 0.8)
    away = clamp((1 - home_share) * 1.1, 0.1, 0.8)
    draw = max(0.1, 1 - home - away)
    return normalize_probabilities(home, draw, away)


def btts_probability(home_expected: float, away_expected: float) -> float:
    return (1 - math.exp(-home_expected)) * (1 - math.exp(-away_expected))


def over25_probability(total_expected: float) -> float:
    if total_expected < 1.5:
        return 0.2
    if total_expected < 2.5:
        return 0.4
    if total_expected < 3.5:
        return 0.7
    return 0.85


def uniform_baseline(home_team: str, away_team: str) -> Prediction:
    """Fixed insufficient-data answer: even split, minimum confidence."""
    third = 1.0 / 3
    return Prediction(
        home_team=home_team,
        away_team=away_team,
        home_win_probability=third,
        draw_probability=third,
        away_win_probability=third,
        confidence=constants.INSUFFICIENT_DATA_CONFIDENCE,
        provenance=Provenance.BASELINE,
        key_factors=["Limited data available"],
        model_type=MODEL_TYPE,
    )


def baseline_factors(match_count: int) -> ConfidenceFactors:
    return ConfidenceFactors(
        recency=1.0,
        completeness=completeness_factor(min(match_count, 10), 10, 3),
        accuracy=min(1.0, match_count / 20) * 0.7,
    )


def predict_baseline(
    matches: Sequence[Match],
    home_team: str,
    away_team: str,
    extractor: Optional[FeatureExtractor] = None,
    min_matches: int = constants.MIN_MATCHES,
) -> Prediction:
    """Baseline prediction; fewer than ``min_matches`` degrades to the uniform split."""
    if len(matches) < min_matches:
        return uniform_baseline(home_team, away_team)

    extractor = extractor or FeatureExtractor()
    features = extractor.extract(matches, home_team, away_team)
    home_expected, away_expected = expected_goals(features)
    home, draw, away = outcome_probabilities(home_expected, away_expected)
    confidence = calibrate((home, draw, away), baseline_factors(len(matches)))

    return Prediction(
        home_team=home_team,
        away_team=away_team,
        home_win_probability=home,
        draw_probability=draw,
        away_win_probability=away,
        confidence=clamp(confidence, constants.MIN_CONFIDENCE, constants.MAX_CONFIDENCE),
        provenance=Provenance.BASELINE,
        btts_probability=btts_probability(home_expected, away_expected),
        over25_probability=over25_probability(home_expected + away_expected),
        predicted_score=PredictedScore(int(round(home_expected)), int(round(away_expected))),
        key_factors=key_factors(features, len(matches)),
        model_type=MODEL_TYPE,
    )
