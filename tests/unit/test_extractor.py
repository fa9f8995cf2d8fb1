"""Unit tests for feature extraction."""

import pytest

from matchcast.features.extractor import FeatureExtractor, key_factors, matches_frame, team_frame
from matchcast.models.baseline import predict_baseline
from tests.conftest import make_match


class TestFrames:
    def test_sorted_newest_first(self):
        matches = [
            make_match("Arsenal", "Chelsea", 1, 0, days_ago=100),
            make_match("Chelsea", "Arsenal", 2, 2, days_ago=5),
            make_match("Arsenal", "Chelsea", 0, 1, days_ago=50),
        ]
        frame = matches_frame(matches)
        assert list(frame["fth"]) == [2, 0, 1]

    def test_input_order_kept_without_timestamps(self):
        matches = [
            make_match("Arsenal", "Chelsea", 1, 0, days_ago=100),
            make_match("Chelsea", "Arsenal", 2, 2, days_ago=5),
        ]
        undated = [m.__class__(**{**m.to_dict(), "match_time": None}) for m in matches]
        assert list(matches_frame(undated)["fth"]) == [1, 2]

    def test_team_view(self, mixed_history):
        view = team_frame(matches_frame(mixed_history), "arsenal")
        assert len(view) == 12
        first = view.iloc[0]
        assert first["goals_for"] == 2 and first["goals_against"] == 1
        assert first["result"] == "W" and first["points"] == 3

    def test_venue_filter(self, mixed_history):
        frame = matches_frame(mixed_history)
        assert len(team_frame(frame, "Arsenal", venue="home")) == 6
        assert team_frame(frame, "Arsenal", venue="away")["is_home"].sum() == 0


class TestFeatureExtractor:
    def test_dominant_side(self, dominant_history):
        features = FeatureExtractor().extract(dominant_history, "Arsenal", "Chelsea")
        assert features.home_team_form == 1.0
        assert features.away_team_form == 0.0
        assert features.home_goals_scored == 3.0
        assert features.away_goals_scored == 0.0
        assert features.head_to_head_ratio == 1.0
        assert features.recent_meetings == 10

    def test_strength_is_clamped(self, dominant_history):
        features = FeatureExtractor().extract(dominant_history, "Arsenal", "Chelsea")
        assert features.home_defensive_strength == 3.0
        assert features.away_offensive_strength == 0.3

    def test_head_to_head_ratio(self):
        matches = [
            make_match("Arsenal", "Chelsea", 2, 0, days_ago=1),
            make_match("Chelsea", "Arsenal", 0, 1, days_ago=2),
            make_match("Arsenal", "Chelsea", 1, 1, days_ago=3),
            make_match("Chelsea", "Arsenal", 1, 3, days_ago=4),
            make_match("Arsenal", "Spurs", 0, 4, days_ago=5),
        ]
        ratio, meetings = FeatureExtractor().head_to_head(matches_frame(matches), "Arsenal", "Chelsea")
        assert ratio == pytest.approx(0.75)
        assert meetings == 4

    def test_no_meetings_is_neutral(self):
        matches = [make_match("Arsenal", "Spurs", 1, 0, days_ago=1)]
        features = FeatureExtractor().extract(matches, "Arsenal", "Chelsea")
        assert features.head_to_head_ratio == 0.5
        assert features.recent_meetings == 0

    def test_unknown_team_uses_defaults(self):
        matches = [make_match("Arsenal", "Spurs", 1, 0, days_ago=1)]
        features = FeatureExtractor().extract(matches, "Arsenal", "Chelsea")
        assert features.away_goals_scored == 1.2
        assert features.away_goals_conceded == 1.2
        assert features.away_team_form == 0.5

    def test_form_window(self, mixed_history):
        extractor = FeatureExtractor(form_window=2)
        view = team_frame(matches_frame(mixed_history), "Arsenal")
        # W then D
        assert extractor.form(view) == pytest.approx(4 / 6)

    def test_team_names_are_case_insensitive(self, dominant_history):
        a = FeatureExtractor().extract(dominant_history, "ARSENAL", " chelsea ")
        b = FeatureExtractor().extract(dominant_history, "Arsenal", "Chelsea")
        assert a == b


class TestKeyFactors:
    def test_limited_data(self, dominant_history):
        features = FeatureExtractor().extract(dominant_history, "Arsenal", "Chelsea")
        factors = key_factors(features, 3)
        assert "Home side in good form" in factors
        assert "Away side in poor form" in factors
        assert "Limited data available" in factors


class TestLopsidedRivalry:
    # Newest first: 15 wins, 3 draws and 2 defeats for Arsenal at home.
    RESULTS = "WWDWWLWWWW" + "WDWWLWWDWW"
    SCORES = {"W": (2, 0), "D": (1, 1), "L": (0, 1)}

    @pytest.fixture
    def rivalry(self):
        return [
            make_match("Arsenal", "Chelsea", *self.SCORES[result], days_ago=i * 7)
            for i, result in enumerate(self.RESULTS)
        ]

    def test_head_to_head_ratio(self, rivalry):
        features = FeatureExtractor().extract(rivalry, "Arsenal", "Chelsea")
        assert 0.7 <= features.head_to_head_ratio <= 0.8
        assert features.recent_meetings == 10

    def test_full_history_ratio(self, rivalry):
        features = FeatureExtractor(h2h_window=20).extract(rivalry, "Arsenal", "Chelsea")
        assert features.head_to_head_ratio == pytest.approx(0.75)

    def test_baseline_favours_home_side(self, rivalry):
        prediction = predict_baseline(rivalry, "Arsenal", "Chelsea")
        assert prediction.home_win_probability > prediction.away_win_probability
        assert prediction.is_normalized()
