"""Team name and pair key normalization."""

from matchcast.normalization.ids import (
    PairKey,
    canonicalize_team_name,
    normalize_team_key,
    make_pair_key,
    make_match_id,
)

__all__ = [
    "PairKey",
    "canonicalize_team_name",
    "normalize_team_key",
    "make_pair_key",
    "make_match_id",
]
