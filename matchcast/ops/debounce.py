"""Trailing-edge debounce for coroutine calls."""

from typing import Any, Awaitable, Callable, Optional
import asyncio
import logging

logger = logging.getLogger(__name__)


class Debouncer:
    """
    Collapse rapid successive calls into the last one.

    Each ``call`` schedules ``factory(signal)`` to run after ``delay``
    seconds of quiet. A call superseded while still waiting is cancelled.
    Once its factory has started it is left to finish and only its
    ``signal`` is set, so the work underneath can discard its result.
    """

    def __init__(self, delay: float) -> None:
        self.delay = max(0.0, float(delay))
        self._pending: Optional[asyncio.Task] = None
        self._signal: Optional[asyncio.Event] = None
        self._started = False

    def call(
        self,
        factory: Callable[[asyncio.Event], Awaitable[Any]],
        signal: Optional[asyncio.Event] = None,
    ) -> "asyncio.Task":
        self.cancel()
        self._signal = signal if signal is not None else asyncio.Event()
        self._started = False
        self._pending = asyncio.ensure_future(self._run(factory, self._signal))
        return self._pending

    async def _run(self, factory: Callable[[asyncio.Event], Awaitable[Any]], signal: asyncio.Event) -> Any:
        await asyncio.sleep(self.delay)
        # Still current here: a superseding call cancels during the sleep.
        self._started = True
        return await factory(signal)

    def cancel(self) -> None:
        task, signal = self._pending, self._signal
        self._pending = None
        self._signal = None
        if task is None or task.done():
            return
        if self._started:
            signal.set()
            logger.debug("Superseded running debounced call; left to finish")
        else:
            task.cancel()
            logger.debug("Superseded pending debounced call")

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()
