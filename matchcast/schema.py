"""Core data records shared across the engine."""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple
import math

from matchcast.normalization.ids import canonicalize_team_name, make_match_id, PairKey

PROBABILITY_TOLERANCE = 1e-6


class Provenance(str, Enum):
    SERVER = "server"
    BASELINE = "baseline"


def _as_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result):
        return None
    return result


def normalize_probabilities(home: float, draw: float, away: float) -> Tuple[float, float, float]:
    """Scale a probability triple so it sums to 1. A non-positive total becomes uniform."""
    home, draw, away = (max(0.0, float(p)) for p in (home, draw, away))
    total = home + draw + away
    if total <= 0:
        return (1.0 / 3, 1.0 / 3, 1.0 / 3)
    return (home / total, draw / total, away / total)


@dataclass(frozen=True)
class Match:
    """Immutable historical match record."""

    home_team: str
    away_team: str
    full_time_home_goals: int
    full_time_away_goals: int
    half_time_home_goals: Optional[int] = None
    half_time_away_goals: Optional[int] = None
    match_time: Optional[str] = None
    league: Optional[str] = None
    season: Optional[str] = None
    id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Match":
        home = canonicalize_team_name(row.get("home_team"))
        away = canonicalize_team_name(row.get("away_team"))
        match_time = row.get("match_time") or row.get("date")
        ht_home = row.get("half_time_home_goals")
        ht_away = row.get("half_time_away_goals")
        return cls(
            home_team=home,
            away_team=away,
            full_time_home_goals=_as_int(row.get("full_time_home_goals")),
            full_time_away_goals=_as_int(row.get("full_time_away_goals")),
            half_time_home_goals=None if ht_home in (None, "") else _as_int(ht_home),
            half_time_away_goals=None if ht_away in (None, "") else _as_int(ht_away),
            match_time=str(match_time) if match_time else None,
            league=row.get("league") or None,
            season=str(row["season"]) if row.get("season") else None,
            id=str(row["id"]) if row.get("id") else make_match_id(home, away, match_time),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @property
    def goal_difference(self) -> int:
        return self.full_time_home_goals - self.full_time_away_goals

    @property
    def total_goals(self) -> int:
        return self.full_time_home_goals + self.full_time_away_goals


@dataclass(frozen=True)
class PredictedScore:
    home: int
    away: int

    def to_dict(self) -> Dict[str, int]:
        return {"home": self.home, "away": self.away}


@dataclass
class PredictionFeatures:
    """Per-request features derived from match history. Never persisted."""

    home_team_form: float
    away_team_form: float
    home_goals_scored: float
    home_goals_conceded: float
    away_goals_scored: float
    away_goals_conceded: float
    home_offensive_strength: float
    away_offensive_strength: float
    home_defensive_strength: float
    away_defensive_strength: float
    head_to_head_ratio: float
    recent_meetings: int
    home_match_count: int = 0
    away_match_count: int = 0
    home_advantage: float = 0.65

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Prediction:
    home_team: str
    away_team: str
    home_win_probability: float
    draw_probability: float
    away_win_probability: float
    confidence: float
    provenance: Provenance
    btts_probability: Optional[float] = None
    over25_probability: Optional[float] = None
    predicted_score: Optional[PredictedScore] = None
    key_factors: List[str] = field(default_factory=list)
    model_type: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[str] = None
    expires_at: Optional[str] = None

    @property
    def probabilities(self) -> Tuple[float, float, float]:
        return (self.home_win_probability, self.draw_probability, self.away_win_probability)

    def is_normalized(self) -> bool:
        return abs(sum(self.probabilities) - 1.0) <= PROBABILITY_TOLERANCE

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["provenance"] = self.provenance.value
        payload["predicted_score"] = self.predicted_score.to_dict() if self.predicted_score else None
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Prediction":
        score = payload.get("predicted_score")
        return cls(
            home_team=payload["home_team"],
            away_team=payload["away_team"],
            home_win_probability=float(payload["home_win_probability"]),
            draw_probability=float(payload["draw_probability"]),
            away_win_probability=float(payload["away_win_probability"]),
            confidence=float(payload["confidence"]),
            provenance=Provenance(payload.get("provenance", Provenance.BASELINE.value)),
            btts_probability=_as_float(payload.get("btts_probability")),
            over25_probability=_as_float(payload.get("over25_probability")),
            predicted_score=PredictedScore(int(score["home"]), int(score["away"])) if score else None,
            key_factors=list(payload.get("key_factors") or []),
            model_type=payload.get("model_type"),
            id=payload.get("id"),
            created_at=payload.get("created_at"),
            expires_at=payload.get("expires_at"),
        )

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Prediction":
        """Build a server-provenance prediction from a backend row."""
        home, draw, away = normalize_probabilities(
            _as_float(row.get("home_win_probability")) or 0.0,
            _as_float(row.get("draw_probability")) or 0.0,
            _as_float(row.get("away_win_probability")) or 0.0,
        )
        score = row.get("predicted_score")
        predicted: Optional[PredictedScore] = None
        if isinstance(score, Mapping) and score.get("home") is not None and score.get("away") is not None:
            predicted = PredictedScore(_as_int(score["home"]), _as_int(score["away"]))
        elif row.get("predicted_home_goals") is not None and row.get("predicted_away_goals") is not None:
            predicted = PredictedScore(
                _as_int(row["predicted_home_goals"]), _as_int(row["predicted_away_goals"])
            )
        confidence = _as_float(row.get("confidence_score"))
        if confidence is None:
            confidence = _as_float(row.get("confidence"))
        return cls(
            home_team=canonicalize_team_name(row.get("home_team")),
            away_team=canonicalize_team_name(row.get("away_team")),
            home_win_probability=home,
            draw_probability=draw,
            away_win_probability=away,
            confidence=min(0.95, max(0.1, confidence if confidence is not None else 0.5)),
            provenance=Provenance.SERVER,
            btts_probability=_as_float(row.get("btts_probability")),
            over25_probability=_as_float(row.get("over25_probability")),
            predicted_score=predicted,
            key_factors=list(row.get("key_factors") or []),
            model_type=row.get("model_type") or row.get("prediction_type"),
            id=str(row["id"]) if row.get("id") else None,
            created_at=row.get("created_at"),
            expires_at=row.get("expires_at"),
        )


@dataclass
class CacheEntry:
    """
    A cached slot for a pair key.

    A positive entry carries a prediction; a negative entry records that
    no data was found and carries ``cooldown_until`` instead.
    """

    fetched_at: float
    prediction: Optional[Prediction] = None
    cooldown_until: Optional[float] = None

    @property
    def is_negative(self) -> bool:
        return self.prediction is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fetched_at": self.fetched_at,
            "prediction": self.prediction.to_dict() if self.prediction else None,
            "cooldown_until": self.cooldown_until,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CacheEntry":
        prediction = payload.get("prediction")
        return cls(
            fetched_at=float(payload["fetched_at"]),
            prediction=Prediction.from_dict(prediction) if prediction else None,
            cooldown_until=_as_float(payload.get("cooldown_until")),
        )


@dataclass
class AccuracyStat:
    prediction_type: str
    total_predictions: int
    correct_predictions: int
    accuracy_percentage: float
    avg_confidence: float
    avg_probability_accuracy: float

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "AccuracyStat":
        return cls(
            prediction_type=str(row.get("prediction_type") or "default"),
            total_predictions=_as_int(row.get("total_predictions")),
            correct_predictions=_as_int(row.get("correct_predictions")),
            accuracy_percentage=_as_float(row.get("accuracy_percentage")) or 0.0,
            avg_confidence=_as_float(row.get("avg_confidence")) or 0.0,
            avg_probability_accuracy=_as_float(row.get("avg_probability_accuracy")) or 0.0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


__all__ = [
    "AccuracyStat",
    "CacheEntry",
    "Match",
    "PairKey",
    "PredictedScore",
    "Prediction",
    "PredictionFeatures",
    "Provenance",
    "normalize_probabilities",
]
