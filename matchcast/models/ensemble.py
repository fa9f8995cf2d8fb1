"""Weighted ensemble of home-context and away-context team sub-models."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
import logging

from matchcast import constants
from matchcast.features.extractor import FeatureExtractor, clamp, key_factors, matches_frame
from matchcast.models.baseline import uniform_baseline
from matchcast.models.confidence import ConfidenceFactors, completeness_factor, explain
from matchcast.models.markets import MarketOdds, MarketPredictions, predict_markets
from matchcast.models.poisson import most_likely_score
from matchcast.models.team_model import TeamModelOutput, TeamSubModel
from matchcast.normalization.ids import normalize_team_key
from matchcast.schema import Match, PredictedScore, Prediction, Provenance, normalize_probabilities

logger = logging.getLogger(__name__)

MODEL_TYPE = "ensemble"


@dataclass
class EnsembleResult:
    prediction: Prediction
    markets: MarketPredictions
    expected_goals: Tuple[float, float]
    home_model: Optional[TeamModelOutput] = None
    away_model: Optional[TeamModelOutput] = None
    explanations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prediction": self.prediction.to_dict(),
            "markets": self.markets.to_dict(),
            "expected_goals": {"home": self.expected_goals[0], "away": self.expected_goals[1]},
            "home_model": self.home_model.to_dict() if self.home_model else None,
            "away_model": self.away_model.to_dict() if self.away_model else None,
            "explanations": list(self.explanations),
        }


class EnsemblePredictor:
    """
    Blend the home team's home model with the away team's away model.

    Sub-models are kept per (team, venue) and refreshed by ``fit``.
    """

    def __init__(
        self,
        extractor: Optional[FeatureExtractor] = None,
        home_weight: float = constants.HOME_MODEL_WEIGHT,
        away_weight: float = constants.AWAY_MODEL_WEIGHT,
        min_matches: int = constants.MIN_MATCHES,
    ) -> None:
        self.extractor = extractor or FeatureExtractor()
        self.home_weight = home_weight
        self.away_weight = away_weight
        self.min_matches = min_matches
        self._models: Dict[Tuple[str, str], TeamSubModel] = {}

    def fit(self, matches: Iterable[Match]) -> "EnsemblePredictor":
        """Refit a home and an away sub-model for every team in ``matches``."""
        frame = matches_frame(matches)
        teams = set(frame["home_team"]).union(frame["away_team"]) if not frame.empty else set()
        for team in teams:
            for context in ("home", "away"):
                model = self.sub_model(team, context)
                model.fit(frame)
        logger.debug("Fitted sub-models for %d teams", len(teams))
        return self

    def sub_model(self, team: str, context: str) -> TeamSubModel:
        key = (normalize_team_key(team), context)
        model = self._models.get(key)
        if model is None:
            model = TeamSubModel(
                team,
                context,
                window=self.extractor.goal_window,
                league_avg_goals=self.extractor.league_avg_goals,
            )
            self._models[key] = model
        return model

    def combine(self, home: TeamModelOutput, away: TeamModelOutput) -> TeamModelOutput:
        """Fixed-weight blend from the home side's point of view."""
        hw, aw = self.home_weight, self.away_weight
        home_win, draw, away_win = normalize_probabilities(
            home.win * hw + away.loss * aw,
            home.draw * hw + away.draw * aw,
            home.loss * hw + away.win * aw,
        )
        return TeamModelOutput(
            win=home_win,
            draw=draw,
            loss=away_win,
            goals_scored=home.goals_scored * hw + away.goals_conceded * aw,
            goals_conceded=home.goals_conceded * hw + away.goals_scored * aw,
            btts=home.btts * hw + away.btts * aw,
            over=home.over * hw + away.over * aw,
            confidence=(home.confidence + away.confidence) / 2,
            sample_size=home.sample_size + away.sample_size,
        )

    def predict(
        self,
        matches: Sequence[Match],
        home_team: str,
        away_team: str,
        odds: Optional[MarketOdds] = None,
    ) -> EnsembleResult:
        if len(matches) < self.min_matches:
            prediction = uniform_baseline(home_team, away_team)
            prediction.model_type = MODEL_TYPE
            avg = self.extractor.league_avg_goals
            markets = predict_markets(*prediction.probabilities, avg * 2, 0.5, odds)
            return EnsembleResult(
                prediction=prediction,
                markets=markets,
                expected_goals=(avg, avg),
                explanations=explain(prediction.probabilities, ConfidenceFactors(completeness=0.3)),
            )

        self.fit(matches)
        home_out = self.sub_model(home_team, "home").predict()
        away_out = self.sub_model(away_team, "away").predict()
        combined = self.combine(home_out, away_out)
        probabilities = (combined.win, combined.draw, combined.loss)

        features = self.extractor.extract(matches, home_team, away_team)
        factors = ConfidenceFactors(
            recency=1.0,
            completeness=completeness_factor(min(len(matches), 10), 10, 3),
            accuracy=combined.confidence,
        )
        score = most_likely_score(combined.goals_scored, combined.goals_conceded)

        prediction = Prediction(
            home_team=home_team,
            away_team=away_team,
            home_win_probability=combined.win,
            draw_probability=combined.draw,
            away_win_probability=combined.loss,
            confidence=clamp(combined.confidence, constants.MIN_CONFIDENCE, constants.MAX_CONFIDENCE),
            provenance=Provenance.BASELINE,
            btts_probability=combined.btts,
            over25_probability=combined.over,
            predicted_score=PredictedScore(*score),
            key_factors=key_factors(features, len(matches)),
            model_type=MODEL_TYPE,
        )
        markets = predict_markets(
            *probabilities,
            combined.goals_scored + combined.goals_conceded,
            combined.btts,
            odds,
        )
        return EnsembleResult(
            prediction=prediction,
            markets=markets,
            expected_goals=(combined.goals_scored, combined.goals_conceded),
            home_model=home_out,
            away_model=away_out,
            explanations=explain(probabilities, factors),
        )
