"""Canonical ID helpers."""

from dataclasses import dataclass
from typing import Optional
import hashlib

from matchcast.exceptions import ValidationError


def canonicalize_team_name(name: Optional[str]) -> str:
    return " ".join((name or "").strip().split())


def normalize_team_key(name: Optional[str]) -> str:
    """Case-insensitive comparison key for a team name."""
    return canonicalize_team_name(name).lower()


@dataclass(frozen=True)
class PairKey:
    """
    Normalized (home, away) identifier for a prediction request and its cache slot.

    ``str(key)`` joins the names with a tab, which canonical names never
    contain, so distinct pairs always get distinct slots.
    """

    home: str
    away: str

    def __str__(self) -> str:
        return f"{self.home}\t{self.away}"


def make_pair_key(home_team: Optional[str], away_team: Optional[str]) -> PairKey:
    """Build a PairKey, rejecting missing or identical team names."""
    home = normalize_team_key(home_team)
    away = normalize_team_key(away_team)
    if not home:
        raise ValidationError("home_team", "team name is required")
    if not away:
        raise ValidationError("away_team", "team name is required")
    if home == away:
        raise ValidationError("away_team", "home and away team must differ")
    return PairKey(home=home, away=away)


def make_match_id(home_team: str, away_team: str, match_time: Optional[str]) -> str:
    payload = f"{normalize_team_key(home_team)}:{normalize_team_key(away_team)}:{match_time or ''}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]
