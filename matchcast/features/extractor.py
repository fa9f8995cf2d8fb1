"""Derive prediction features from a window of historical matches."""

from typing import Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from matchcast import constants
from matchcast.normalization.ids import normalize_team_key
from matchcast.schema import Match, PredictionFeatures

_FRAME_COLUMNS = [
    "home_team",
    "away_team",
    "home_key",
    "away_key",
    "fth",
    "fta",
    "hth",
    "hta",
    "match_time",
]


def matches_frame(matches: Iterable[Match]) -> pd.DataFrame:
    """Tabulate matches newest first. Input order is kept when timestamps are missing."""
    rows = [
        {
            "home_team": m.home_team,
            "away_team": m.away_team,
            "home_key": normalize_team_key(m.home_team),
            "away_key": normalize_team_key(m.away_team),
            "fth": m.full_time_home_goals,
            "fta": m.full_time_away_goals,
            "hth": m.half_time_home_goals,
            "hta": m.half_time_away_goals,
            "match_time": m.match_time,
        }
        for m in matches
    ]
    frame = pd.DataFrame(rows, columns=_FRAME_COLUMNS)
    if frame.empty:
        return frame
    times = pd.to_datetime(frame["match_time"], errors="coerce", utc=True)
    if times.notna().all():
        frame = frame.assign(_ts=times).sort_values("_ts", ascending=False, kind="mergesort")
        frame = frame.drop(columns="_ts")
    return frame.reset_index(drop=True)


def team_frame(frame: pd.DataFrame, team: str, venue: Optional[str] = None) -> pd.DataFrame:
    """
    Matches involving ``team`` seen from its side.

    ``venue`` restricts to ``"home"`` or ``"away"`` fixtures. Adds
    goals_for, goals_against, points and result columns.
    """
    key = normalize_team_key(team)
    if frame.empty:
        return frame.assign(is_home=[], goals_for=[], goals_against=[], points=[], result=[])
    is_home = frame["home_key"] == key
    is_away = frame["away_key"] == key
    if venue == "home":
        mask = is_home
    elif venue == "away":
        mask = is_away
    else:
        mask = is_home | is_away
    subset = frame[mask].copy()
    home_side = (subset["home_key"] == key).to_numpy()
    subset["is_home"] = home_side
    subset["goals_for"] = np.where(home_side, subset["fth"], subset["fta"]).astype(int)
    subset["goals_against"] = np.where(home_side, subset["fta"], subset["fth"]).astype(int)
    won = subset["goals_for"] > subset["goals_against"]
    drawn = subset["goals_for"] == subset["goals_against"]
    subset["points"] = np.select([won, drawn], [3, 1], default=0)
    subset["result"] = np.select([won, drawn], ["W", "D"], default="L")
    return subset.reset_index(drop=True)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class FeatureExtractor:
    """Stateless feature derivation; windows are configuration, not state."""

    def __init__(
        self,
        form_window: int = constants.FORM_WINDOW,
        goal_window: int = constants.GOAL_WINDOW,
        h2h_window: int = constants.H2H_WINDOW,
        league_avg_goals: float = constants.LEAGUE_AVG_GOALS,
        home_advantage: float = constants.HOME_ADVANTAGE,
    ) -> None:
        self.form_window = form_window
        self.goal_window = goal_window
        self.h2h_window = h2h_window
        self.league_avg_goals = league_avg_goals
        self.home_advantage = home_advantage

    @classmethod
    def from_config(cls, config) -> "FeatureExtractor":
        return cls(
            form_window=config.form_window,
            goal_window=config.goal_window,
            h2h_window=config.h2h_window,
            league_avg_goals=config.league_avg_goals,
        )

    def form(self, team_matches: pd.DataFrame) -> float:
        """Points ratio over the most recent form window, 0.5 when unknown."""
        recent = team_matches.head(self.form_window)
        if recent.empty:
            return constants.NEUTRAL_FORM
        return float(recent["points"].sum()) / (len(recent) * 3)

    def goal_averages(self, team_matches: pd.DataFrame) -> Tuple[float, float]:
        window = team_matches.head(self.goal_window)
        if window.empty:
            return constants.DEFAULT_GOALS_AVG, constants.DEFAULT_GOALS_AVG
        return float(window["goals_for"].mean()), float(window["goals_against"].mean())

    def strength(self, scored: float, conceded: float) -> Tuple[float, float]:
        offensive = clamp(
            scored / self.league_avg_goals, constants.MIN_STRENGTH, constants.MAX_STRENGTH
        )
        defensive = clamp(
            self.league_avg_goals / max(0.1, conceded), constants.MIN_STRENGTH, constants.MAX_STRENGTH
        )
        return offensive, defensive

    def head_to_head(self, frame: pd.DataFrame, home_team: str, away_team: str) -> Tuple[float, int]:
        """Share of direct meetings (either venue) won by ``home_team``."""
        home_key = normalize_team_key(home_team)
        away_key = normalize_team_key(away_team)
        if frame.empty:
            return constants.NEUTRAL_H2H, 0
        direct = frame[
            ((frame["home_key"] == home_key) & (frame["away_key"] == away_key))
            | ((frame["home_key"] == away_key) & (frame["away_key"] == home_key))
        ]
        meetings = team_frame(direct, home_team).head(self.h2h_window)
        if meetings.empty:
            return constants.NEUTRAL_H2H, 0
        wins = int((meetings["result"] == "W").sum())
        return wins / len(meetings), len(meetings)

    def extract(self, matches: Iterable[Match], home_team: str, away_team: str) -> PredictionFeatures:
        frame = matches_frame(matches)
        home_matches = team_frame(frame, home_team)
        away_matches = team_frame(frame, away_team)

        home_scored, home_conceded = self.goal_averages(home_matches)
        away_scored, away_conceded = self.goal_averages(away_matches)
        home_off, home_def = self.strength(home_scored, home_conceded)
        away_off, away_def = self.strength(away_scored, away_conceded)
        h2h_ratio, meetings = self.head_to_head(frame, home_team, away_team)

        return PredictionFeatures(
            home_team_form=self.form(home_matches),
            away_team_form=self.form(away_matches),
            home_goals_scored=home_scored,
            home_goals_conceded=home_conceded,
            away_goals_scored=away_scored,
            away_goals_conceded=away_conceded,
            home_offensive_strength=home_off,
            away_offensive_strength=away_off,
            home_defensive_strength=home_def,
            away_defensive_strength=away_def,
            head_to_head_ratio=h2h_ratio,
            recent_meetings=meetings,
            home_match_count=min(len(home_matches), self.goal_window),
            away_match_count=min(len(away_matches), self.goal_window),
            home_advantage=self.home_advantage,
        )


def key_factors(features: PredictionFeatures, match_count: int) -> List[str]:
    factors = []
    if features.home_team_form > 0.7:
        factors.append("Home side in good form")
    elif features.home_team_form < 0.4:
        factors.append("Home side in poor form")

    if features.away_team_form > 0.7:
        factors.append("Away side in good form")
    elif features.away_team_form < 0.4:
        factors.append("Away side in poor form")

    if features.head_to_head_ratio > 0.6:
        factors.append("Home side dominates previous meetings")
    elif features.head_to_head_ratio < 0.3:
        factors.append("Away side has the better head-to-head record")

    if match_count < 5:
        factors.append("Limited data available")
    elif match_count > 20:
        factors.append("Rich historical data")

    if not factors:
        factors.append("Basic statistical analysis")
    return factors
