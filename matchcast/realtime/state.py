"""Connection state machine for the realtime channel."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, Optional, Tuple
import logging
import time

from matchcast import constants
from matchcast.exceptions import MatchCastError

logger = logging.getLogger(__name__)


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DEGRADED = "degraded"


class ConnectionEvent(str, Enum):
    START = "start"
    SUBSCRIBED = "subscribed"
    FAILED = "failed"
    EXHAUSTED = "exhausted"
    STOP = "stop"


# Attempts keep counting through a long outage; the delay is capped long before this.
MAX_BACKOFF_EXPONENT = 30

S = ConnectionStatus
E = ConnectionEvent

TRANSITIONS: Dict[Tuple[ConnectionStatus, ConnectionEvent], ConnectionStatus] = {
    (S.DISCONNECTED, E.START): S.CONNECTING,
    (S.DISCONNECTED, E.STOP): S.DISCONNECTED,
    (S.CONNECTING, E.SUBSCRIBED): S.CONNECTED,
    (S.CONNECTING, E.FAILED): S.CONNECTING,
    (S.CONNECTING, E.EXHAUSTED): S.DEGRADED,
    (S.CONNECTING, E.STOP): S.DISCONNECTED,
    (S.CONNECTED, E.FAILED): S.CONNECTING,
    (S.CONNECTED, E.EXHAUSTED): S.DEGRADED,
    (S.CONNECTED, E.STOP): S.DISCONNECTED,
    (S.DEGRADED, E.SUBSCRIBED): S.CONNECTED,
    (S.DEGRADED, E.FAILED): S.DEGRADED,
    (S.DEGRADED, E.EXHAUSTED): S.DEGRADED,
    (S.DEGRADED, E.STOP): S.DISCONNECTED,
}

# Transport status strings -> machine events
STATUS_EVENTS: Dict[str, ConnectionEvent] = {
    "SUBSCRIBED": E.SUBSCRIBED,
    "CHANNEL_ERROR": E.FAILED,
    "TIMED_OUT": E.FAILED,
    "CLOSED": E.FAILED,
}


class InvalidTransitionError(MatchCastError):
    def __init__(self, status: ConnectionStatus, event: ConnectionEvent):
        self.status = status
        self.event = event
        super().__init__(f"No transition from {status.value} on {event.value}")


@dataclass
class ConnectionState:
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    attempt: int = 0
    last_error: Optional[str] = None
    changed_at: float = field(default_factory=time.time)

    @property
    def is_polling(self) -> bool:
        return self.status is ConnectionStatus.DEGRADED


@dataclass(frozen=True)
class FailureOutcome:
    delay: float
    entered_degraded: bool
    attempt: int


class ConnectionStateMachine:
    """
    Explicit transition table plus the retry counter.

    The attempt counter grows on every failure, including failed reconnects
    while degraded, and resets to 0 only on reaching ``connected``.
    """

    def __init__(
        self,
        max_retries: int = constants.REALTIME_MAX_RETRIES,
        base_delay: float = constants.REALTIME_BASE_DELAY,
        max_delay: float = constants.REALTIME_MAX_DELAY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_retries = max(1, int(max_retries))
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._clock = clock
        self._state = ConnectionState(changed_at=clock())

    @property
    def state(self) -> ConnectionState:
        return replace(self._state)

    @property
    def status(self) -> ConnectionStatus:
        return self._state.status

    def _apply(self, event: ConnectionEvent) -> ConnectionStatus:
        current = self._state.status
        target = TRANSITIONS.get((current, event))
        if target is None:
            raise InvalidTransitionError(current, event)
        if target is not current:
            logger.info("Realtime connection %s -> %s", current.value, target.value)
            self._state.changed_at = self._clock()
        self._state.status = target
        return target

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retrying after the ``attempt``-th consecutive failure."""
        exponent = min(max(0, attempt - 1), MAX_BACKOFF_EXPONENT)
        return min(self.base_delay * (2 ** exponent), self.max_delay)

    def start(self) -> ConnectionStatus:
        return self._apply(E.START)

    def subscribed(self) -> bool:
        """Enter ``connected``; True when this restores a previously failing channel."""
        restored = self._state.attempt > 0
        self._apply(E.SUBSCRIBED)
        self._state.attempt = 0
        self._state.last_error = None
        return restored

    def failed(self, error: Optional[str] = None) -> FailureOutcome:
        was_degraded = self._state.status is S.DEGRADED
        self._state.attempt += 1
        self._state.last_error = error
        if self._state.attempt >= self.max_retries:
            self._apply(E.EXHAUSTED)
        else:
            self._apply(E.FAILED)
        return FailureOutcome(
            delay=self.backoff_delay(self._state.attempt),
            entered_degraded=not was_degraded and self._state.status is S.DEGRADED,
            attempt=self._state.attempt,
        )

    def handle_status(self, status: str, error: Optional[str] = None) -> Optional[FailureOutcome]:
        """Apply a transport status string; unknown strings are ignored."""
        event = STATUS_EVENTS.get(status.upper())
        if event is None:
            logger.debug("Ignoring realtime status %s", status)
            return None
        if event is E.SUBSCRIBED:
            self.subscribed()
            return None
        return self.failed(error or status)

    def stop(self) -> ConnectionStatus:
        return self._apply(E.STOP)
