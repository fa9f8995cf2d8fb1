"""Prediction models."""

from matchcast.models.baseline import predict_baseline, uniform_baseline
from matchcast.models.confidence import ConfidenceCalibrator, ConfidenceFactors, calibrate, explain
from matchcast.models.ensemble import EnsemblePredictor, EnsembleResult
from matchcast.models.markets import MarketOdds, MarketPredictions, MarketSelection, predict_markets
from matchcast.models.team_model import TeamModelOutput, TeamSubModel

__all__ = [
    "predict_baseline",
    "uniform_baseline",
    "ConfidenceCalibrator",
    "ConfidenceFactors",
    "calibrate",
    "explain",
    "EnsemblePredictor",
    "EnsembleResult",
    "MarketOdds",
    "MarketPredictions",
    "MarketSelection",
    "predict_markets",
    "TeamModelOutput",
    "TeamSubModel",
]
