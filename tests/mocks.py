"""Fake collaborators for exercising the prediction engine without a backend."""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Sequence

from matchcast.exceptions import DataNotFoundError
from matchcast.ingestion.base import (
    MatchHistoryProvider,
    PredictionProvider,
    PullSource,
    PushSource,
    Subscription,
)
from matchcast.schema import AccuracyStat, Match, Prediction, Provenance


class FakeClock:
    """Manually advanced clock for cooldown and TTL checks."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def server_prediction(home_team: str = "Arsenal", away_team: str = "Chelsea") -> Prediction:
    return Prediction(
        home_team=home_team,
        away_team=away_team,
        home_win_probability=0.5,
        draw_probability=0.3,
        away_win_probability=0.2,
        confidence=0.7,
        provenance=Provenance.SERVER,
        model_type="server",
        id="pred-1",
    )


class FakePredictionProvider(PredictionProvider):
    """
    Returns ``result`` for every lookup.

    When ``gate`` is given, each call blocks until it is set. ``error`` is
    raised instead of returning when provided.
    """

    def __init__(
        self,
        result: Optional[Prediction] = None,
        error: Optional[BaseException] = None,
        gate: Optional[asyncio.Event] = None,
        delay: float = 0.0,
        ready: bool = True,
        init_error: Optional[BaseException] = None,
    ):
        self.result = result
        self.error = error
        self.gate = gate
        self.delay = delay
        self.ready = ready
        self.init_error = init_error
        self.calls: List[tuple] = []
        self.completed: List[tuple] = []
        self.update_calls = 0
        self.stats: List[AccuracyStat] = []

    async def get_prediction(self, home_team: str, away_team: str) -> Optional[Prediction]:
        self.calls.append((home_team, away_team))
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        self.completed.append((home_team, away_team))
        if self.error is not None:
            raise self.error
        return self.result

    async def get_accuracy_stats(self, date_from=None, date_to=None, model_type=None) -> List[AccuracyStat]:
        return list(self.stats)

    async def trigger_update(self) -> bool:
        self.update_calls += 1
        return True

    async def initialize(self) -> bool:
        if self.init_error is not None:
            raise self.init_error
        return self.ready


class FakeMatchProvider(MatchHistoryProvider):
    def __init__(self, matches: Optional[Sequence[Match]] = None):
        self.matches = list(matches or [])
        self.calls = 0

    async def get_matches_between_teams(
        self, home_team, away_team, signal=None, timeout=None, mode="return-matches"
    ) -> List[Match]:
        self.calls += 1
        if not self.matches:
            raise DataNotFoundError(home_team, away_team)
        return list(self.matches)


class FakeSubscription(Subscription):
    def __init__(self):
        self.closed = False

    async def close(self) -> None:
        self.closed = True


class FakePushSource(PushSource):
    """
    Scripted push channel.

    ``script`` holds one entry per subscribe attempt: an exception to
    raise, a status string reported right after subscribing, or "SILENT"
    to never acknowledge. Once the script runs out every further attempt
    fails with CHANNEL_ERROR.
    """

    def __init__(self, script: Optional[List[Any]] = None):
        self.script = list(script or [])
        self.attempts = 0
        self.subscriptions: List[FakeSubscription] = []
        self.on_event: Optional[Callable] = None
        self.on_status: Optional[Callable] = None

    async def subscribe(self, table, events, on_event, on_status) -> Subscription:
        self.attempts += 1
        self.on_event = on_event
        self.on_status = on_status
        step = self.script.pop(0) if self.script else "CHANNEL_ERROR"
        if isinstance(step, BaseException):
            raise step
        subscription = FakeSubscription()
        self.subscriptions.append(subscription)
        if step == "SILENT":
            return subscription
        on_status(step, None if step == "SUBSCRIBED" else "scripted failure")
        return subscription

    def emit(self, payload: Dict[str, Any]) -> None:
        self.on_event(payload)

    def drop(self, error: str = "socket closed") -> None:
        self.on_status("CLOSED", error)


class FakePullSource(PullSource):
    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None):
        self.rows = list(rows or [])
        self.calls = 0

    async def fetch_latest(self, table: str, limit: int) -> List[Dict[str, Any]]:
        self.calls += 1
        return self.rows[:limit]


class RecordingSleep:
    """
    Stand-in for asyncio.sleep that records delays.

    The first ``passes`` calls only yield; every later call blocks until
    the sleeping task is cancelled, so reconnect loops cannot spin.
    """

    def __init__(self, passes: int = 0):
        self.passes = passes
        self.delays: List[float] = []
        self._never: Optional[asyncio.Event] = None

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if len(self.delays) <= self.passes:
            await asyncio.sleep(0)
            return
        if self._never is None:
            self._never = asyncio.Event()
        await self._never.wait()


async def wait_until(predicate: Callable[[], bool], max_iterations: int = 500) -> bool:
    for _ in range(max_iterations):
        if predicate():
            return True
        await asyncio.sleep(0)
    return predicate()
