"""Deterministic per-team, per-venue sub-models."""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Tuple
import math

import pandas as pd

from matchcast import constants
from matchcast.features.extractor import team_frame
from matchcast.models.confidence import ConfidenceFactors, calibrate
from matchcast.models.poisson import over_probability
from matchcast.normalization.ids import normalize_team_key
from matchcast.schema import normalize_probabilities

CONTEXTS = ("home", "away")

# (win, draw, loss) priors by venue
CONTEXT_PRIORS: Dict[str, Tuple[float, float, float]] = {
    "home": (0.45, 0.27, 0.28),
    "away": (0.28, 0.27, 0.45),
}
PRIOR_WEIGHT = 5.0


@dataclass
class TeamModelOutput:
    win: float
    draw: float
    loss: float
    goals_scored: float
    goals_conceded: float
    btts: float
    over: float
    confidence: float
    sample_size: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class TeamSubModel:
    """
    Record of one team in one venue context.

    Rates are shrunk towards the venue prior so that short records stay
    sensible; goal rates fall back to the league average.
    """

    def __init__(
        self,
        team: str,
        context: str,
        window: int = constants.GOAL_WINDOW,
        league_avg_goals: float = constants.LEAGUE_AVG_GOALS,
        prior_weight: float = PRIOR_WEIGHT,
    ) -> None:
        if context not in CONTEXTS:
            raise ValueError(f"context must be one of {CONTEXTS}, got {context!r}")
        self.team = team
        self.context = context
        self.window = window
        self.league_avg_goals = league_avg_goals
        self.prior_weight = prior_weight
        self._output = self._from_record(pd.DataFrame())

    @property
    def key(self) -> Tuple[str, str]:
        return normalize_team_key(self.team), self.context

    def fit(self, frame: pd.DataFrame) -> "TeamSubModel":
        record = team_frame(frame, self.team, venue=self.context).head(self.window)
        self._output = self._from_record(record)
        return self

    def predict(self) -> TeamModelOutput:
        return self._output

    def _from_record(self, record: pd.DataFrame) -> TeamModelOutput:
        n = len(record)
        prior_win, prior_draw, prior_loss = CONTEXT_PRIORS[self.context]
        k = self.prior_weight
        if n:
            wins = int((record["result"] == "W").sum())
            draws = int((record["result"] == "D").sum())
            losses = n - wins - draws
            scored = float(record["goals_for"].mean())
            conceded = float(record["goals_against"].mean())
        else:
            wins = draws = losses = 0
            scored = conceded = self.league_avg_goals

        win, draw, loss = normalize_probabilities(
            (wins + k * prior_win) / (n + k),
            (draws + k * prior_draw) / (n + k),
            (losses + k * prior_loss) / (n + k),
        )
        factors = ConfidenceFactors(recency=1.0, completeness=min(1.0, n / 20))
        return TeamModelOutput(
            win=win,
            draw=draw,
            loss=loss,
            goals_scored=scored,
            goals_conceded=conceded,
            btts=(1 - math.exp(-scored)) * (1 - math.exp(-conceded)),
            over=over_probability(scored + conceded),
            confidence=calibrate((win, draw, loss), factors),
            sample_size=n,
        )
