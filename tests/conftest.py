"""
Pytest configuration and shared fixtures for match prediction tests.
"""

from datetime import datetime, timedelta
from typing import List, Optional

import pytest

from matchcast.config import Config
from matchcast.ops.alerts import AlertManager, CallbackAlert
from matchcast.schema import Match
from matchcast.storage.cache import MemoryCache
from matchcast.storage.result_cache import ResultCache
from tests.mocks import FakeClock


def make_match(
    home: str,
    away: str,
    home_goals: int,
    away_goals: int,
    days_ago: int,
    ht_home: Optional[int] = None,
    ht_away: Optional[int] = None,
) -> Match:
    when = datetime(2024, 6, 1) - timedelta(days=days_ago)
    return Match(
        home_team=home,
        away_team=away,
        full_time_home_goals=home_goals,
        full_time_away_goals=away_goals,
        half_time_home_goals=ht_home,
        half_time_away_goals=ht_away,
        match_time=when.isoformat(),
        league="Premier League",
        id=f"{home}-{away}-{days_ago}",
    )


@pytest.fixture
def dominant_history() -> List[Match]:
    """Ten meetings where Arsenal win 3-0 at either venue, newest first."""
    matches = []
    for i in range(10):
        if i % 2 == 0:
            matches.append(make_match("Arsenal", "Chelsea", 3, 0, days_ago=i * 30))
        else:
            matches.append(make_match("Chelsea", "Arsenal", 0, 3, days_ago=i * 30))
    return matches


@pytest.fixture
def mixed_history() -> List[Match]:
    """Twelve Arsenal/Chelsea meetings with a spread of results and half-time scores."""
    scores = [
        ("Arsenal", "Chelsea", 2, 1, 0, 1),
        ("Chelsea", "Arsenal", 1, 1, 1, 0),
        ("Arsenal", "Chelsea", 0, 2, 0, 1),
        ("Chelsea", "Arsenal", 2, 3, 2, 0),
        ("Arsenal", "Chelsea", 1, 0, 0, 0),
        ("Chelsea", "Arsenal", 0, 0, 0, 0),
        ("Arsenal", "Chelsea", 3, 2, 1, 2),
        ("Chelsea", "Arsenal", 2, 0, 1, 0),
        ("Arsenal", "Chelsea", 2, 2, 1, 1),
        ("Chelsea", "Arsenal", 1, 2, 1, 1),
        ("Arsenal", "Chelsea", 4, 1, 2, 0),
        ("Chelsea", "Arsenal", 3, 1, 2, 1),
    ]
    return [
        make_match(home, away, fh, fa, days_ago=i * 20, ht_home=hh, ht_away=ha)
        for i, (home, away, fh, fa, hh, ha) in enumerate(scores)
    ]


@pytest.fixture
def short_history() -> List[Match]:
    return [
        make_match("Arsenal", "Chelsea", 2, 0, days_ago=10),
        make_match("Chelsea", "Arsenal", 1, 1, days_ago=40),
        make_match("Arsenal", "Chelsea", 1, 2, days_ago=70),
    ]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def result_cache(clock) -> ResultCache:
    return ResultCache(MemoryCache(default_ttl=None, clock=clock), cooldown_seconds=60, clock=clock)


@pytest.fixture
def alert_sink():
    """AlertManager recording alerts into a list."""
    received = []
    manager = AlertManager([CallbackAlert(received.append)])
    return manager, received


@pytest.fixture
def config() -> Config:
    return Config(api_url="http://backend.test", api_key="test-key", debounce_ms=0)
