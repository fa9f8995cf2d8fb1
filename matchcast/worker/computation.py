"""Computation worker: runs the models off the interactive path.

Requests and responses cross the executor boundary as plain dicts, so the
same ``handle_message`` serves thread and process pools alike.
"""

from concurrent.futures import BrokenExecutor, Executor, ProcessPoolExecutor, ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence
import asyncio
import logging

from matchcast.exceptions import ComputationError, ConfigurationError
from matchcast.features.extractor import FeatureExtractor
from matchcast.features.statistics import calculate_legend_mode, calculate_statistics, sort_matches
from matchcast.models.baseline import predict_baseline
from matchcast.models.ensemble import EnsemblePredictor
from matchcast.models.markets import MarketOdds
from matchcast.ops.metrics import MetricsRecorder, get_metrics_recorder
from matchcast.schema import Match, Prediction
from matchcast.worker.messages import RequestType, ResponseType, WorkerRequest, WorkerResponse

logger = logging.getLogger(__name__)

_EXTRACTOR_OPTIONS = ("form_window", "goal_window", "h2h_window", "league_avg_goals")


def _matches(payload: Mapping[str, Any]) -> List[Match]:
    rows = payload.get("matches") or []
    return [row if isinstance(row, Match) else Match.from_row(row) for row in rows]


def _teams(payload: Mapping[str, Any]):
    home = payload.get("homeTeam") or payload.get("home_team")
    away = payload.get("awayTeam") or payload.get("away_team")
    if not home or not away:
        raise ValueError("homeTeam and awayTeam are required")
    return home, away


def _extractor(payload: Mapping[str, Any]) -> FeatureExtractor:
    options = payload.get("options") or {}
    return FeatureExtractor(**{k: options[k] for k in _EXTRACTOR_OPTIONS if k in options})


def _min_matches(payload: Mapping[str, Any]) -> int:
    return int((payload.get("options") or {}).get("min_matches", 5))


def _calculate_predictions(payload: Mapping[str, Any]) -> Dict[str, Any]:
    home, away = _teams(payload)
    prediction = predict_baseline(
        _matches(payload), home, away,
        extractor=_extractor(payload),
        min_matches=_min_matches(payload),
    )
    return prediction.to_dict()


def _calculate_ensemble(payload: Mapping[str, Any]) -> Dict[str, Any]:
    home, away = _teams(payload)
    predictor = EnsemblePredictor(extractor=_extractor(payload), min_matches=_min_matches(payload))
    result = predictor.predict(_matches(payload), home, away, MarketOdds.from_dict(payload.get("odds")))
    return result.to_dict()


def _calculate_statistics(payload: Mapping[str, Any]) -> Dict[str, Any]:
    return calculate_statistics(_matches(payload), *_teams(payload))


def _calculate_legend_mode(payload: Mapping[str, Any]) -> Dict[str, Any]:
    return calculate_legend_mode(_matches(payload), *_teams(payload))


def _sort_matches(payload: Mapping[str, Any]) -> List[Dict[str, Any]]:
    ordered = sort_matches(
        _matches(payload),
        sort_by=payload.get("sortBy") or payload.get("sort_by") or "date",
        direction=payload.get("direction") or "desc",
    )
    return [m.to_dict() for m in ordered]


_HANDLERS: Dict[str, Callable[[Mapping[str, Any]], Any]] = {
    RequestType.CALCULATE_PREDICTIONS.value: _calculate_predictions,
    RequestType.CALCULATE_ENSEMBLE.value: _calculate_ensemble,
    RequestType.CALCULATE_STATISTICS.value: _calculate_statistics,
    RequestType.CALCULATE_LEGEND_MODE.value: _calculate_legend_mode,
    RequestType.SORT_MATCHES.value: _sort_matches,
}


def handle_message(message: Mapping[str, Any]) -> Dict[str, Any]:
    """Process one request dict and return the response dict. Never raises."""
    request = WorkerRequest.from_dict(message)
    handler = _HANDLERS.get(request.type)
    if handler is None:
        return WorkerResponse.failure(request.id, f"Unknown message type: {request.type}").to_dict()
    try:
        result = handler(request.payload)
    except Exception as e:
        logger.exception("Worker failed on %s", request.type)
        return WorkerResponse.failure(request.id, str(e) or type(e).__name__).to_dict()

    if request.type == RequestType.CALCULATE_PREDICTIONS.value:
        kind = ResponseType.CALCULATE_PREDICTIONS_RESULT.value
    else:
        kind = ResponseType.SUCCESS.value
    return WorkerResponse(type=kind, id=request.id, result=result).to_dict()


class ComputationWorker:
    """
    Async front-end to an executor running ``handle_message``.

    Each call builds a request with a fresh id and checks the response
    carries the same id. ERROR responses raise ComputationError.
    """

    def __init__(
        self,
        mode: str = "thread",
        max_workers: int = 1,
        executor: Optional[Executor] = None,
        options: Optional[Dict[str, Any]] = None,
        metrics: Optional[MetricsRecorder] = None,
    ) -> None:
        if executor is None:
            if mode == "thread":
                executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="matchcast-worker")
            elif mode == "process":
                executor = ProcessPoolExecutor(max_workers=max_workers)
            else:
                raise ConfigurationError("worker_mode", f"unsupported mode '{mode}'")
        self._executor = executor
        self._options = dict(options or {})
        self._metrics = metrics or get_metrics_recorder()

    @classmethod
    def from_config(cls, config, metrics: Optional[MetricsRecorder] = None) -> "ComputationWorker":
        return cls(
            mode=config.worker_mode,
            max_workers=config.worker_max_workers,
            options={
                "min_matches": config.min_matches,
                "form_window": config.form_window,
                "goal_window": config.goal_window,
                "h2h_window": config.h2h_window,
                "league_avg_goals": config.league_avg_goals,
            },
            metrics=metrics,
        )

    async def submit(self, request: WorkerRequest) -> WorkerResponse:
        loop = asyncio.get_running_loop()
        kind = request.to_dict()["type"]
        try:
            with self._metrics.timer(f"worker.{kind}"):
                raw = await loop.run_in_executor(self._executor, handle_message, request.to_dict())
        except (BrokenExecutor, RuntimeError) as e:
            self._metrics.increment("worker.error")
            raise ComputationError(f"executor unavailable: {e}", kind) from e
        response = WorkerResponse.from_dict(raw)
        if response.id != request.id:
            raise ComputationError(f"response id {response.id} does not match request {request.id}", kind)
        return response

    async def _call(self, kind: RequestType, payload: Dict[str, Any]) -> Any:
        payload = dict(payload)
        payload.setdefault("options", self._options)
        response = await self.submit(WorkerRequest(type=kind, payload=payload))
        if not response.ok:
            self._metrics.increment("worker.error")
            raise ComputationError(response.error or "unknown error", kind.value)
        return response.result

    @staticmethod
    def _pair_payload(matches: Sequence[Match], home_team: str, away_team: str) -> Dict[str, Any]:
        return {
            "matches": [m.to_dict() for m in matches],
            "homeTeam": home_team,
            "awayTeam": away_team,
        }

    async def calculate_predictions(self, matches: Sequence[Match], home_team: str, away_team: str) -> Prediction:
        result = await self._call(
            RequestType.CALCULATE_PREDICTIONS, self._pair_payload(matches, home_team, away_team)
        )
        return Prediction.from_dict(result)

    async def calculate_ensemble(
        self,
        matches: Sequence[Match],
        home_team: str,
        away_team: str,
        odds: Optional[MarketOdds] = None,
    ) -> Dict[str, Any]:
        payload = self._pair_payload(matches, home_team, away_team)
        payload["odds"] = odds.to_dict() if odds else None
        return await self._call(RequestType.CALCULATE_ENSEMBLE, payload)

    async def calculate_statistics(self, matches: Sequence[Match], home_team: str, away_team: str) -> Dict[str, Any]:
        return await self._call(
            RequestType.CALCULATE_STATISTICS, self._pair_payload(matches, home_team, away_team)
        )

    async def calculate_legend_mode(self, matches: Sequence[Match], home_team: str, away_team: str) -> Dict[str, Any]:
        return await self._call(
            RequestType.CALCULATE_LEGEND_MODE, self._pair_payload(matches, home_team, away_team)
        )

    async def sort_matches(self, matches: Sequence[Match], sort_by: str = "date", direction: str = "desc") -> List[Match]:
        result = await self._call(
            RequestType.SORT_MATCHES,
            {"matches": [m.to_dict() for m in matches], "sortBy": sort_by, "direction": direction},
        )
        return [Match.from_row(row) for row in result]

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
