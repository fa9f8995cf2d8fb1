"""Per-market selections that maximise expected ROI against supplied odds.

Each market picks the outcome with the best ``probability * odds - 1``,
which is not necessarily the most probable outcome.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Mapping, Optional, Tuple
import math

from matchcast.constants import DEFAULT_MARKET_ODDS, HTFT_OUTCOMES

HTFT_SHARES = {
    "1/1": ("home", 0.6),
    "1/X": ("home", 0.1),
    "1/2": ("home", 0.05),
    "X/1": ("home", 0.25),
    "X/X": ("draw", 0.6),
    "X/2": ("away", 0.25),
    "2/1": ("home", 0.05),
    "2/X": ("draw", 0.15),
    "2/2": ("away", 0.6),
}


@dataclass
class MarketOdds:
    """Decimal odds per outcome; missing prices fall back to market defaults."""

    home: Optional[float] = None
    draw: Optional[float] = None
    away: Optional[float] = None
    over25: Optional[float] = None
    under25: Optional[float] = None
    btts_yes: Optional[float] = None
    btts_no: Optional[float] = None
    htft: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Optional[Mapping[str, Any]]) -> "MarketOdds":
        payload = payload or {}

        def price(name: str) -> Optional[float]:
            value = payload.get(name)
            return float(value) if value not in (None, "") else None

        return cls(
            home=price("home"),
            draw=price("draw"),
            away=price("away"),
            over25=price("over25"),
            under25=price("under25"),
            btts_yes=price("btts_yes"),
            btts_no=price("btts_no"),
            htft={str(k): float(v) for k, v in (payload.get("htft") or {}).items()},
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MarketSelection:
    market: str
    selection: str
    probability: float
    odds: float
    roi: float
    confidence: float
    probabilities: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MarketPredictions:
    one_x_two: MarketSelection
    over_under: MarketSelection
    btts: MarketSelection
    ht_ft: MarketSelection

    @property
    def selections(self) -> Tuple[MarketSelection, ...]:
        return (self.one_x_two, self.over_under, self.btts, self.ht_ft)

    @property
    def overall_roi(self) -> float:
        return sum(s.roi for s in self.selections) / 4

    @property
    def overall_confidence(self) -> float:
        return sum(s.confidence for s in self.selections) / 4

    def to_dict(self) -> Dict[str, Any]:
        return {
            "1x2": self.one_x_two.to_dict(),
            "ou25": self.over_under.to_dict(),
            "btts": self.btts.to_dict(),
            "htft": self.ht_ft.to_dict(),
            "overall_roi": self.overall_roi,
            "overall_confidence": self.overall_confidence,
        }


def expected_roi(probability: float, odds: float) -> float:
    return probability * odds - 1


def _price(value: Optional[float], default: float) -> float:
    return float(value) if value is not None and value > 1.0 else default


def select_by_roi(
    market: str,
    probabilities: Mapping[str, float],
    odds: Mapping[str, float],
    confidence: float,
) -> MarketSelection:
    """Outcome with the highest expected ROI; ties keep the first listed outcome."""
    best_name = None
    best_roi = -math.inf
    for name, probability in probabilities.items():
        roi = expected_roi(probability, odds[name])
        if roi > best_roi:
            best_name, best_roi = name, roi
    return MarketSelection(
        market=market,
        selection=best_name,
        probability=probabilities[best_name],
        odds=odds[best_name],
        roi=best_roi,
        confidence=confidence,
        probabilities=dict(probabilities),
    )


def _top_two_gap(probabilities: Mapping[str, float]) -> float:
    ranked = sorted(probabilities.values(), reverse=True)
    return ranked[0] - ranked[1]


def predict_1x2(home: float, draw: float, away: float, odds: MarketOdds) -> MarketSelection:
    default = DEFAULT_MARKET_ODDS["1x2"]
    probabilities = {"1": home, "X": draw, "2": away}
    prices = {
        "1": _price(odds.home, default),
        "X": _price(odds.draw, default),
        "2": _price(odds.away, default),
    }
    confidence = min(0.5 + _top_two_gap(probabilities) * 2, 0.95)
    return select_by_roi("1x2", probabilities, prices, confidence)


def predict_over_under(total_goals: float, odds: MarketOdds) -> MarketSelection:
    default = DEFAULT_MARKET_ODDS["ou25"]
    over = 1.0 / (1.0 + math.exp(-(total_goals - 2.5) * 1.5))
    probabilities = {"over": over, "under": 1.0 - over}
    prices = {
        "over": _price(odds.over25, default),
        "under": _price(odds.under25, default),
    }
    confidence = 0.5 + min(abs(total_goals - 2.5) * 0.2, 0.45)
    return select_by_roi("ou25", probabilities, prices, confidence)


def predict_btts(btts_probability: float, odds: MarketOdds) -> MarketSelection:
    default = DEFAULT_MARKET_ODDS["btts"]
    probabilities = {"yes": btts_probability, "no": 1.0 - btts_probability}
    prices = {
        "yes": _price(odds.btts_yes, default),
        "no": _price(odds.btts_no, default),
    }
    confidence = 0.5 + abs(btts_probability - 0.5) * 0.8
    return select_by_roi("btts", probabilities, prices, confidence)


def htft_distribution(home: float, draw: float, away: float) -> Dict[str, float]:
    base = {"home": home, "draw": draw, "away": away}
    raw = {outcome: base[source] * share for outcome, (source, share) in HTFT_SHARES.items()}
    total = sum(raw.values())
    if total <= 0:
        return {outcome: 1.0 / len(HTFT_OUTCOMES) for outcome in HTFT_OUTCOMES}
    return {outcome: raw[outcome] / total for outcome in HTFT_OUTCOMES}


def predict_htft(home: float, draw: float, away: float, odds: MarketOdds) -> MarketSelection:
    default = DEFAULT_MARKET_ODDS["htft"]
    probabilities = htft_distribution(home, draw, away)
    prices = {outcome: _price(odds.htft.get(outcome), default) for outcome in HTFT_OUTCOMES}
    confidence = min(0.4 + _top_two_gap(probabilities) * 3, 0.9)
    return select_by_roi("htft", probabilities, prices, confidence)


def predict_markets(
    home: float,
    draw: float,
    away: float,
    total_goals: float,
    btts_probability: float,
    odds: Optional[MarketOdds] = None,
) -> MarketPredictions:
    odds = odds or MarketOdds()
    return MarketPredictions(
        one_x_two=predict_1x2(home, draw, away, odds),
        over_under=predict_over_under(total_goals, odds),
        btts=predict_btts(btts_probability, odds),
        ht_ft=predict_htft(home, draw, away, odds),
    )
