"""Feature derivation from match history."""

from matchcast.features.extractor import FeatureExtractor, key_factors, matches_frame, team_frame
from matchcast.features.statistics import calculate_statistics, calculate_legend_mode, sort_matches

__all__ = [
    "FeatureExtractor",
    "key_factors",
    "matches_frame",
    "team_frame",
    "calculate_statistics",
    "calculate_legend_mode",
    "sort_matches",
]
