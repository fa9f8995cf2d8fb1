"""In-flight guard and cooldown gate in front of the prediction provider."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
import asyncio
import logging

from matchcast import constants
from matchcast.coordination.inflight import InFlightTracker
from matchcast.exceptions import DataNotFoundError, RequestTimeoutError
from matchcast.ingestion.base import PredictionProvider
from matchcast.normalization.ids import PairKey, make_pair_key
from matchcast.ops.metrics import MetricsRecorder, get_metrics_recorder
from matchcast.schema import Prediction, Provenance
from matchcast.storage.result_cache import ResultCache

logger = logging.getLogger(__name__)

_CANCELLED = object()


class RequestStatus(str, Enum):
    FOUND = "found"
    CACHED = "cached"
    IN_FLIGHT = "in_flight"
    COOLDOWN = "cooldown"
    NOT_FOUND = "not_found"
    CANCELLED = "cancelled"


@dataclass
class RequestResult:
    key: PairKey
    status: RequestStatus
    prediction: Optional[Prediction] = None


def _discard_late_result(task: "asyncio.Future") -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug("Discarded failure from cancelled request: %s", error)
    else:
        logger.debug("Discarded result from cancelled request")


class RequestCoordinator:
    """
    At most one provider call per pair key at a time.

    A duplicate request, a pair in cooldown and a cancelled request all
    answer None. "Not found" is a normal outcome that starts a cooldown;
    provider failures (auth, network, timeout) propagate.
    """

    def __init__(
        self,
        provider: PredictionProvider,
        cache: ResultCache,
        inflight: Optional[InFlightTracker] = None,
        timeout: float = constants.LIGHT_LOOKUP_TIMEOUT,
        metrics: Optional[MetricsRecorder] = None,
    ) -> None:
        self._provider = provider
        self._cache = cache
        self._inflight = inflight if inflight is not None else InFlightTracker()
        self.timeout = timeout
        self._metrics = metrics or get_metrics_recorder()

    @property
    def inflight(self) -> InFlightTracker:
        return self._inflight

    async def request(
        self, home_team: str, away_team: str, signal: Optional[asyncio.Event] = None
    ) -> Optional[Prediction]:
        result = await self.resolve(home_team, away_team, signal)
        return result.prediction

    async def resolve(
        self, home_team: str, away_team: str, signal: Optional[asyncio.Event] = None
    ) -> RequestResult:
        key = make_pair_key(home_team, away_team)
        if not self._inflight.acquire(key):
            self._metrics.increment("coordinator.dedup")
            logger.debug("Request for %s already in flight", key)
            return RequestResult(key, RequestStatus.IN_FLIGHT)

        try:
            if self._cache.in_cooldown(key):
                self._metrics.increment("coordinator.cooldown_hit")
                logger.debug(
                    "Pair %s cooling down for %.1fs", key, self._cache.cooldown_remaining(key)
                )
                return RequestResult(key, RequestStatus.COOLDOWN)

            cached = self._cache.get(key)
            if cached is not None and cached.provenance is Provenance.SERVER:
                self._metrics.increment("coordinator.cache_hit")
                return RequestResult(key, RequestStatus.CACHED, cached)

            if signal is not None and signal.is_set():
                self._metrics.increment("coordinator.cancelled")
                return RequestResult(key, RequestStatus.CANCELLED)

            prediction = await self._call_provider(key, home_team, away_team, signal)
            if prediction is _CANCELLED:
                self._metrics.increment("coordinator.cancelled")
                return RequestResult(key, RequestStatus.CANCELLED)

            if prediction is None:
                self._metrics.increment("coordinator.provider_empty")
                self._cache.record_no_data(key)
                return RequestResult(key, RequestStatus.NOT_FOUND)

            self._metrics.increment("coordinator.provider_hit")
            self._cache.clear_cooldown(key)
            self._cache.put(key, prediction)
            return RequestResult(key, RequestStatus.FOUND, prediction)
        finally:
            self._inflight.release(key)

    async def _call_provider(
        self,
        key: PairKey,
        home_team: str,
        away_team: str,
        signal: Optional[asyncio.Event],
    ):
        call = asyncio.ensure_future(
            asyncio.wait_for(self._provider.get_prediction(home_team, away_team), self.timeout)
        )
        if signal is not None:
            waiter = asyncio.ensure_future(signal.wait())
            try:
                done, _ = await asyncio.wait({call, waiter}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                if not waiter.done():
                    waiter.cancel()
            if call not in done:
                logger.info("Request for %s cancelled; provider call left to finish", key)
                call.add_done_callback(_discard_late_result)
                return _CANCELLED

        try:
            return await call
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError("prediction provider", self.timeout, e) from e
        except DataNotFoundError:
            return None
