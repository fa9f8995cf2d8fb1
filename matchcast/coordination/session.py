"""UI-facing prediction session.

Debounces team selection, asks the coordinator for a server prediction and
falls back to a worker-computed baseline when the server has nothing.
"""

from typing import Callable, List, Optional
import asyncio
import logging

from matchcast.config import Config
from matchcast.coordination.coordinator import RequestCoordinator, RequestStatus
from matchcast.coordination.inflight import InFlightTracker
from matchcast.exceptions import (
    AbortedError,
    ComputationError,
    DataNotFoundError,
    ProviderError,
    ValidationError,
)
from matchcast.ingestion.base import (
    EVENT_DELETE,
    MatchHistoryProvider,
    PredictionProvider,
    PushEvent,
)
from matchcast.models.markets import MarketOdds
from matchcast.normalization.ids import PairKey, make_pair_key
from matchcast.ops.alerts import AlertManager, LoggingAlert
from matchcast.ops.debounce import Debouncer
from matchcast.ops.metrics import MetricsRecorder, get_metrics_recorder
from matchcast.schema import AccuracyStat, Prediction
from matchcast.storage.result_cache import ResultCache, build_cache_store
from matchcast.worker.computation import ComputationWorker

logger = logging.getLogger(__name__)

PredictionListener = Callable[[PairKey, Optional[Prediction]], None]


class PredictionSession:
    def __init__(
        self,
        coordinator: RequestCoordinator,
        cache: ResultCache,
        prediction_provider: PredictionProvider,
        match_provider: Optional[MatchHistoryProvider] = None,
        worker: Optional[ComputationWorker] = None,
        alerts: Optional[AlertManager] = None,
        config: Optional[Config] = None,
        metrics: Optional[MetricsRecorder] = None,
    ) -> None:
        self.config = config or Config()
        self._coordinator = coordinator
        self._cache = cache
        self._prediction_provider = prediction_provider
        self._match_provider = match_provider
        self._worker = worker
        self._alerts = alerts or AlertManager([LoggingAlert()])
        self._metrics = metrics or get_metrics_recorder()
        self._debouncer = Debouncer(self.config.debounce_seconds)
        self._baseline_inflight = InFlightTracker()
        self._listeners: List[PredictionListener] = []
        self.current_key: Optional[PairKey] = None
        self.current: Optional[Prediction] = None

    @classmethod
    def from_config(
        cls,
        config: Config,
        prediction_provider: PredictionProvider,
        match_provider: Optional[MatchHistoryProvider] = None,
        alerts: Optional[AlertManager] = None,
        metrics: Optional[MetricsRecorder] = None,
    ) -> "PredictionSession":
        cache = ResultCache(
            build_cache_store(config),
            ttl_seconds=config.prediction_cache_ttl,
            cooldown_seconds=config.cooldown_seconds,
        )
        coordinator = RequestCoordinator(
            prediction_provider, cache, timeout=config.lookup_timeout, metrics=metrics
        )
        worker = ComputationWorker.from_config(config, metrics=metrics) if config.enable_baseline else None
        return cls(
            coordinator,
            cache,
            prediction_provider,
            match_provider=match_provider,
            worker=worker,
            alerts=alerts,
            config=config,
            metrics=metrics,
        )

    @property
    def cache(self) -> ResultCache:
        return self._cache

    def add_listener(self, listener: PredictionListener) -> None:
        self._listeners.append(listener)

    def _publish(self, key: PairKey, prediction: Optional[Prediction]) -> None:
        if self.current_key is not None and key != self.current_key:
            return
        self.current = prediction
        for listener in list(self._listeners):
            listener(key, prediction)

    async def initialize(self) -> bool:
        """Check backend functions; an unreachable backend raises an alert, not an error."""
        error = None
        try:
            ready = await self._prediction_provider.initialize()
        except ProviderError as e:
            ready, error = False, str(e)
        if not ready:
            logger.error("Prediction service failed to initialize: %s", error or "unavailable")
            self._alerts.send_service_failure(
                "Prediction service",
                error or "Backend prediction functions are not available.",
            )
        return ready

    def select_teams(
        self, home_team: str, away_team: str, signal: Optional[asyncio.Event] = None
    ) -> "asyncio.Task":
        """
        Debounced ``get_prediction``; rapid edits collapse into the last one.

        A selection replaced after its lookup started is not aborted: its
        ``signal`` is set and the coordinator discards the late result.
        """
        try:
            self.current_key = make_pair_key(home_team, away_team)
        except ValidationError:
            self.current_key = None
        return self._debouncer.call(
            lambda superseded: self.get_prediction(home_team, away_team, superseded),
            signal=signal,
        )

    async def get_prediction(
        self, home_team: str, away_team: str, signal: Optional[asyncio.Event] = None
    ) -> Optional[Prediction]:
        result = await self._coordinator.resolve(home_team, away_team, signal)
        prediction = result.prediction

        if prediction is None and self.config.enable_baseline:
            if result.status is RequestStatus.NOT_FOUND:
                prediction = await self._compute_baseline(result.key, home_team, away_team, signal)
            elif result.status is RequestStatus.COOLDOWN:
                prediction = self._cache.get(result.key)

        if result.status not in (RequestStatus.IN_FLIGHT, RequestStatus.CANCELLED):
            self._publish(result.key, prediction)
        return prediction

    async def _compute_baseline(
        self,
        key: PairKey,
        home_team: str,
        away_team: str,
        signal: Optional[asyncio.Event],
    ) -> Optional[Prediction]:
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        if self._match_provider is None or self._worker is None:
            return None
        if not self._baseline_inflight.acquire(key):
            return None
        try:
            try:
                matches = await self._match_provider.get_matches_between_teams(
                    home_team, away_team, signal=signal, timeout=self.config.match_timeout
                )
            except DataNotFoundError:
                self._cache.record_no_data(key)
                return None
            except AbortedError:
                logger.debug("Baseline lookup for %s aborted", key)
                return None
            if signal is not None and signal.is_set():
                return None

            try:
                prediction = await self._worker.calculate_predictions(matches, home_team, away_team)
            except ComputationError as e:
                logger.warning("Baseline computation failed for %s: %s", key, e)
                return None

            self._cache.put(key, prediction)
            self._metrics.increment("session.baseline")
            return prediction
        finally:
            self._baseline_inflight.release(key)

    async def predict_markets(
        self,
        home_team: str,
        away_team: str,
        odds: Optional[MarketOdds] = None,
        signal: Optional[asyncio.Event] = None,
    ) -> Optional[dict]:
        """Ensemble prediction with ROI-maximising market picks, or None without history."""
        make_pair_key(home_team, away_team)
        if self._match_provider is None or self._worker is None:
            return None
        try:
            matches = await self._match_provider.get_matches_between_teams(
                home_team, away_team, signal=signal, timeout=self.config.match_timeout
            )
        except DataNotFoundError:
            return None
        try:
            return await self._worker.calculate_ensemble(matches, home_team, away_team, odds)
        except ComputationError as e:
            logger.warning("Ensemble computation failed: %s", e)
            return None

    async def get_accuracy_stats(
        self,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        model_type: Optional[str] = None,
    ) -> List[AccuracyStat]:
        return await self._prediction_provider.get_accuracy_stats(date_from, date_to, model_type)

    async def trigger_update(self) -> bool:
        updated = await self._prediction_provider.trigger_update()
        if updated:
            logger.info("Server-side prediction update triggered")
        return updated

    def attach_realtime(self, manager) -> None:
        """Feed pushed server predictions into the result cache."""
        manager.add_listener(self.apply_push_event)

    def apply_push_event(self, event: PushEvent) -> None:
        row = event.old if event.event_type == EVENT_DELETE else event.new
        try:
            key = make_pair_key(row.get("home_team"), row.get("away_team"))
        except ValidationError:
            logger.debug("Ignoring %s event without a team pair", event.event_type)
            return

        if event.event_type == EVENT_DELETE:
            self._cache.invalidate(key)
            return

        prediction = Prediction.from_row(row)
        self._cache.clear_cooldown(key)
        self._cache.put(key, prediction)
        if key == self.current_key:
            self._publish(key, prediction)

    def close(self) -> None:
        self._debouncer.cancel()
        if self._worker is not None:
            self._worker.shutdown(wait=False)
