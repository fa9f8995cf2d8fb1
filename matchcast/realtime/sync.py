"""Realtime sync: push subscription with reconnect/backoff and polling fallback."""

from typing import Any, Awaitable, Callable, List, Mapping, Optional, Sequence, Tuple
import asyncio
import inspect
import logging

from matchcast import constants
from matchcast.exceptions import ProviderError
from matchcast.ingestion.base import (
    EVENT_UPDATE,
    EventListener,
    PullSource,
    PushEvent,
    PushSource,
    Subscription,
)
from matchcast.ops.alerts import AlertManager, LoggingAlert
from matchcast.ops.metrics import MetricsRecorder, get_metrics_recorder
from matchcast.realtime.records import RecordStore
from matchcast.realtime.state import (
    STATUS_EVENTS,
    ConnectionEvent,
    ConnectionState,
    ConnectionStateMachine,
    ConnectionStatus,
)

logger = logging.getLogger(__name__)

StatusMessage = Tuple[str, Optional[str]]


def _log_run_exit(task: "asyncio.Future") -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error("Realtime sync loop stopped: %s", error, exc_info=error)


class RealtimeSyncManager:
    """
    Owns the push channel for upstream prediction rows.

    Failed subscribes back off exponentially. Once ``max_retries``
    consecutive failures pile up the manager raises a "connection lost"
    alert, polls the pull source every ``polling_interval`` and keeps
    probing the push channel until it comes back.
    """

    def __init__(
        self,
        push_source: PushSource,
        pull_source: Optional[PullSource] = None,
        table: str = "predictions",
        events: Sequence[str] = ("INSERT", "UPDATE", "DELETE"),
        max_retries: int = constants.REALTIME_MAX_RETRIES,
        base_delay: float = constants.REALTIME_BASE_DELAY,
        max_delay: float = constants.REALTIME_MAX_DELAY,
        polling_interval: float = constants.POLLING_INTERVAL,
        max_records: int = constants.MAX_RECORDS,
        connect_timeout: float = constants.LIGHT_LOOKUP_TIMEOUT,
        alerts: Optional[AlertManager] = None,
        metrics: Optional[MetricsRecorder] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._push = push_source
        self._pull = pull_source
        self.table = table
        self.events = [e.upper() for e in events]
        self.polling_interval = max(constants.MIN_POLLING_INTERVAL, polling_interval)
        self.connect_timeout = connect_timeout
        self._machine = ConnectionStateMachine(max_retries, base_delay, max_delay)
        self._records = RecordStore(max_records)
        self._alerts = alerts or AlertManager([LoggingAlert()])
        self._metrics = metrics or get_metrics_recorder()
        self._sleep = sleep
        self._listeners: List[EventListener] = []
        self._status_queue: Optional["asyncio.Queue[StatusMessage]"] = None
        self._subscription: Optional[Subscription] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._run_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None

    @classmethod
    def from_config(
        cls,
        config,
        push_source: PushSource,
        pull_source: Optional[PullSource] = None,
        alerts: Optional[AlertManager] = None,
        metrics: Optional[MetricsRecorder] = None,
    ) -> "RealtimeSyncManager":
        return cls(
            push_source,
            pull_source,
            table=config.realtime_table,
            events=config.realtime_events,
            max_retries=config.realtime_max_retries,
            base_delay=config.realtime_base_delay,
            max_delay=config.realtime_max_delay,
            polling_interval=config.polling_interval,
            max_records=config.max_records,
            connect_timeout=config.lookup_timeout,
            alerts=alerts,
            metrics=metrics,
        )

    @property
    def state(self) -> ConnectionState:
        return self._machine.state

    @property
    def status(self) -> ConnectionStatus:
        return self._machine.status

    @property
    def records(self) -> RecordStore:
        return self._records

    @property
    def running(self) -> bool:
        return self._run_task is not None and not self._run_task.done()

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    async def start(self) -> None:
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._status_queue = asyncio.Queue()
        self._machine.start()
        self._run_task = asyncio.ensure_future(self._run())
        self._run_task.add_done_callback(_log_run_exit)

    async def stop(self) -> None:
        for task in (self._run_task, self._poll_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._run_task = None
        self._poll_task = None
        await self._close_subscription()
        self._machine.stop()

    # Transport callbacks may fire from any thread.
    def _on_event(self, payload: Mapping[str, Any]) -> None:
        self._call_in_loop(self._handle_event, payload)

    def _on_status(self, status: str, error: Optional[str] = None) -> None:
        self._call_in_loop(self._status_queue.put_nowait, (str(status).upper(), error))

    def _call_in_loop(self, fn: Callable, *args: Any) -> None:
        if self._loop is None:
            fn(*args)
        else:
            self._loop.call_soon_threadsafe(fn, *args)

    def _handle_event(self, payload: Mapping[str, Any]) -> None:
        event = PushEvent.from_payload(payload)
        if event.event_type not in self.events:
            return
        if self._records.apply(event):
            self._notify(event)

    def _notify(self, event: PushEvent) -> None:
        for listener in list(self._listeners):
            try:
                outcome = listener(event)
            except Exception:
                logger.exception("Realtime listener failed on %s", event.event_type)
                continue
            if inspect.isawaitable(outcome):
                asyncio.ensure_future(outcome)

    async def _run(self) -> None:
        while True:
            status, error = await self._attempt()
            if status == "SUBSCRIBED":
                self._on_connected()
                status, error = await self._next_status(accept_subscribed=False)
            await self._close_subscription()

            outcome = self._machine.failed(error or status)
            self._metrics.increment("realtime.reconnect")
            logger.warning(
                "Realtime channel %s (attempt %d): %s",
                status.lower(), outcome.attempt, error or "no detail",
            )
            if outcome.entered_degraded:
                self._metrics.increment("realtime.degraded")
                self._alerts.send_connection_lost(outcome.attempt, error or status)
                self._start_polling()

            delay = outcome.delay
            if self._machine.status is ConnectionStatus.DEGRADED:
                delay = max(delay, self.polling_interval)
            await self._sleep(delay)

    async def _attempt(self) -> StatusMessage:
        self._status_queue = asyncio.Queue()
        try:
            self._subscription = await asyncio.wait_for(
                self._push.subscribe(self.table, self.events, self._on_event, self._on_status),
                self.connect_timeout,
            )
        except asyncio.TimeoutError:
            return "TIMED_OUT", "subscribe timed out"
        except (ProviderError, ConnectionError, OSError) as e:
            return "CHANNEL_ERROR", str(e)
        try:
            return await asyncio.wait_for(self._next_status(), self.connect_timeout)
        except asyncio.TimeoutError:
            return "TIMED_OUT", "no subscription acknowledgement"

    async def _next_status(self, accept_subscribed: bool = True) -> StatusMessage:
        while True:
            status, error = await self._status_queue.get()
            event = STATUS_EVENTS.get(status)
            if event is None:
                logger.debug("Ignoring realtime status %s", status)
                continue
            if event is ConnectionEvent.SUBSCRIBED and not accept_subscribed:
                continue
            return status, error

    def _on_connected(self) -> None:
        attempts = self._machine.state.attempt
        restored = self._machine.subscribed()
        self._stop_polling()
        if restored:
            self._alerts.send_connection_restored(attempts)

    async def _close_subscription(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is None:
            return
        try:
            await subscription.close()
        except (ProviderError, ConnectionError, OSError) as e:
            logger.debug("Error closing realtime subscription: %s", e)

    def _start_polling(self) -> None:
        if self._pull is None or (self._poll_task is not None and not self._poll_task.done()):
            return
        self._poll_task = asyncio.ensure_future(self._poll_loop())

    def _stop_polling(self) -> None:
        if self._poll_task is not None and not self._poll_task.done():
            self._poll_task.cancel()
        self._poll_task = None

    async def poll_once(self) -> int:
        """Fetch the latest rows and replay them to listeners as updates."""
        if self._pull is None:
            return 0
        rows = await self._pull.fetch_latest(self.table, self._records.max_records)
        self._records.replace_all(rows)
        self._metrics.increment("realtime.poll")
        for row in rows:
            self._notify(PushEvent(event_type=EVENT_UPDATE, new=dict(row)))
        return len(rows)

    async def _poll_loop(self) -> None:
        while True:
            try:
                count = await self.poll_once()
                logger.debug("Polled %d %s rows", count, self.table)
            except ProviderError as e:
                logger.warning("Polling %s failed: %s", self.table, e)
            await self._sleep(self.polling_interval)
