"""Head-to-head statistics, comeback analysis and match sorting."""

from typing import Any, Dict, List, Sequence

import pandas as pd

from matchcast.features.extractor import matches_frame, team_frame
from matchcast.normalization.ids import normalize_team_key
from matchcast.schema import Match

SORT_KEYS = ("date", "goals", "goal_difference")


def _direct_meetings(frame: pd.DataFrame, home_team: str, away_team: str) -> pd.DataFrame:
    if frame.empty:
        return frame
    home_key = normalize_team_key(home_team)
    away_key = normalize_team_key(away_team)
    mask = (
        ((frame["home_key"] == home_key) & (frame["away_key"] == away_key))
        | ((frame["home_key"] == away_key) & (frame["away_key"] == home_key))
    )
    return frame[mask].reset_index(drop=True)


def _pct(part: int, whole: int) -> float:
    return (part / whole) * 100 if whole else 0.0


def calculate_statistics(matches: Sequence[Match], home_team: str, away_team: str) -> Dict[str, Any]:
    """Totals, win percentages and a last-5 form guide over direct meetings."""
    meetings = _direct_meetings(matches_frame(matches), home_team, away_team)
    home_view = team_frame(meetings, home_team)
    away_view = team_frame(meetings, away_team)
    total = len(home_view)

    home_wins = int((home_view["result"] == "W").sum()) if total else 0
    away_wins = int((home_view["result"] == "L").sum()) if total else 0
    draws = total - home_wins - away_wins
    home_goals = int(home_view["goals_for"].sum()) if total else 0
    away_goals = int(home_view["goals_against"].sum()) if total else 0

    return {
        "total_matches": total,
        "home_wins": home_wins,
        "away_wins": away_wins,
        "draws": draws,
        "home_goals": home_goals,
        "away_goals": away_goals,
        "average_goals_per_match": (home_goals + away_goals) / total if total else 0.0,
        "win_percentage": {
            "home": _pct(home_wins, total),
            "away": _pct(away_wins, total),
            "draw": _pct(draws, total),
        },
        "form_guide": {
            "home_team": home_view["result"].head(5).tolist() if total else [],
            "away_team": away_view["result"].head(5).tolist() if total else [],
        },
    }


def calculate_legend_mode(matches: Sequence[Match], home_team: str, away_team: str) -> Dict[str, Any]:
    """Comebacks from half-time deficits, performance trends and a head-to-head summary."""
    meetings = _direct_meetings(matches_frame(matches), home_team, away_team)
    view = team_frame(meetings, home_team)

    home_comebacks = 0
    away_comebacks = 0
    biggest: Dict[str, Any] = {"match": None, "deficit": 0}
    for row in view.itertuples(index=False):
        if pd.isna(row.hth) or pd.isna(row.hta):
            continue
        ht_for = int(row.hth) if row.is_home else int(row.hta)
        ht_against = int(row.hta) if row.is_home else int(row.hth)
        if ht_against > ht_for and row.result == "W":
            home_comebacks += 1
            deficit = ht_against - ht_for
            if deficit > biggest["deficit"]:
                biggest = {
                    "match": {
                        "home_team": row.home_team,
                        "away_team": row.away_team,
                        "match_time": row.match_time,
                        "score": f"{row.fth}-{row.fta}",
                    },
                    "deficit": deficit,
                }
        if ht_for > ht_against and row.result == "L":
            away_comebacks += 1

    total = len(view)
    recent = view.head(10)
    at_home = view[view["is_home"]] if total else view
    on_road = view[~view["is_home"].astype(bool)] if total else view

    return {
        "comeback_analysis": {
            "home_comebacks": home_comebacks,
            "away_comebacks": away_comebacks,
            "biggest_comeback": biggest,
        },
        "performance_trends": {
            "recent_form": round(_pct(int((recent["result"] == "W").sum()), len(recent))) if total else 0,
            "home_advantage": round(_pct(int((at_home["result"] == "W").sum()), len(at_home))) if total else 0,
            "away_performance": round(_pct(int((on_road["result"] == "W").sum()), len(on_road))) if total else 0,
        },
        "head_to_head": {
            "total_meetings": total,
            "home_wins": int((view["result"] == "W").sum()) if total else 0,
            "away_wins": int((view["result"] == "L").sum()) if total else 0,
            "draws": int((view["result"] == "D").sum()) if total else 0,
            "goal_difference": int((view["goals_for"] - view["goals_against"]).sum()) if total else 0,
        },
    }


def sort_matches(matches: Sequence[Match], sort_by: str = "date", direction: str = "desc") -> List[Match]:
    """Stable sort by date, total goals or absolute goal difference."""
    reverse = direction != "asc"
    if sort_by == "date":
        stamps = pd.to_datetime(pd.Series([m.match_time for m in matches], dtype=object), errors="coerce", utc=True)
        keyed = list(zip(stamps.tolist(), range(len(matches)), matches))
        present = [item for item in keyed if not pd.isna(item[0])]
        missing = [item for item in keyed if pd.isna(item[0])]
        present.sort(key=lambda item: item[0], reverse=reverse)
        return [m for _, _, m in present] + [m for _, _, m in missing]
    if sort_by == "goals":
        return sorted(matches, key=lambda m: m.total_goals, reverse=reverse)
    if sort_by == "goal_difference":
        return sorted(matches, key=lambda m: abs(m.goal_difference), reverse=reverse)
    raise ValueError(f"Unsupported sort key '{sort_by}', expected one of {', '.join(SORT_KEYS)}")
