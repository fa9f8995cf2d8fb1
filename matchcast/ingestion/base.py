"""Interfaces for external collaborators: match history, predictions, push/pull data."""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence
import asyncio

from matchcast.schema import AccuracyStat, Match, Prediction

MODE_PAIRING = "pairing"
MODE_RETURN_MATCHES = "return-matches"
QUERY_MODES = (MODE_PAIRING, MODE_RETURN_MATCHES)

EVENT_INSERT = "INSERT"
EVENT_UPDATE = "UPDATE"
EVENT_DELETE = "DELETE"


class MatchHistoryProvider:
    async def get_matches_between_teams(
        self,
        home_team: str,
        away_team: str,
        signal: Optional[asyncio.Event] = None,
        timeout: Optional[float] = None,
        mode: str = MODE_RETURN_MATCHES,
    ) -> List[Match]:
        """Matches for the pair; raises DataNotFoundError when there are none."""
        raise NotImplementedError


class PredictionProvider:
    async def get_prediction(self, home_team: str, away_team: str) -> Optional[Prediction]:
        raise NotImplementedError

    async def get_accuracy_stats(
        self,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        model_type: Optional[str] = None,
    ) -> List[AccuracyStat]:
        raise NotImplementedError

    async def trigger_update(self) -> bool:
        raise NotImplementedError

    async def initialize(self) -> bool:
        return True


class PullSource:
    async def fetch_latest(self, table: str, limit: int) -> List[Dict[str, Any]]:
        raise NotImplementedError


@dataclass
class PushEvent:
    event_type: str
    new: Dict[str, Any] = field(default_factory=dict)
    old: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "PushEvent":
        return cls(
            event_type=str(payload.get("eventType") or payload.get("event_type") or "").upper(),
            new=dict(payload.get("new") or {}),
            old=dict(payload.get("old") or {}),
        )

    @property
    def record_id(self) -> Optional[str]:
        source = self.old if self.event_type == EVENT_DELETE else self.new
        record_id = source.get("id") or self.old.get("id")
        return str(record_id) if record_id is not None else None


class Subscription:
    async def close(self) -> None:
        raise NotImplementedError


EventCallback = Callable[[Mapping[str, Any]], None]
StatusCallback = Callable[[str, Optional[str]], None]


class PushSource:
    async def subscribe(
        self,
        table: str,
        events: Sequence[str],
        on_event: EventCallback,
        on_status: StatusCallback,
    ) -> Subscription:
        """
        Open a channel for ``table`` row changes.

        ``on_status`` receives SUBSCRIBED, CHANNEL_ERROR, TIMED_OUT or
        CLOSED, plus an optional error message.
        """
        raise NotImplementedError


EventListener = Callable[[PushEvent], Optional[Awaitable[None]]]
