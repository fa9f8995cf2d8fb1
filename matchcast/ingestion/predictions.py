"""Server prediction backend over a PostgREST-style HTTP API.

Blocking ``requests`` calls run in the default executor so the async
provider interface stays non-blocking.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
import asyncio
import functools
import logging

import pandas as pd
import requests

from matchcast import constants
from matchcast.exceptions import (
    AuthenticationError,
    ConfigurationError,
    NetworkError,
    RequestTimeoutError,
    ServiceError,
)
from matchcast.ingestion.base import PredictionProvider, PullSource
from matchcast.normalization.ids import canonicalize_team_name, make_pair_key
from matchcast.schema import AccuracyStat, Prediction

logger = logging.getLogger(__name__)

SOURCE = "prediction service"
EXPIRED_RETENTION_DAYS = 7
NO_DATA_TYPE = "No Data"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _no_data_stats() -> List[AccuracyStat]:
    return [AccuracyStat(NO_DATA_TYPE, 0, 0, 0.0, 0.0, 0.0)]


def summarize_accuracy(rows: List[Dict[str, Any]]) -> List[AccuracyStat]:
    """Group verified prediction rows by type into accuracy stats."""
    if not rows:
        return _no_data_stats()

    frame = pd.DataFrame(rows)
    for column in ("prediction_correct", "confidence_score", "probability_accuracy"):
        if column not in frame.columns:
            frame[column] = None
    if "prediction_type" not in frame.columns:
        frame["prediction_type"] = "default"

    frame["prediction_type"] = frame["prediction_type"].fillna("default")
    frame["correct"] = frame["prediction_correct"].fillna(False).astype(bool)
    frame["confidence_score"] = pd.to_numeric(frame["confidence_score"], errors="coerce")
    frame["probability_accuracy"] = pd.to_numeric(frame["probability_accuracy"], errors="coerce")

    grouped = frame.groupby("prediction_type", sort=True).agg(
        total_predictions=("correct", "size"),
        correct_predictions=("correct", "sum"),
        avg_confidence=("confidence_score", "mean"),
        avg_probability_accuracy=("probability_accuracy", "mean"),
    )

    stats = []
    for prediction_type, row in grouped.iterrows():
        total = int(row["total_predictions"])
        correct = int(row["correct_predictions"])
        stats.append(AccuracyStat(
            prediction_type=str(prediction_type),
            total_predictions=total,
            correct_predictions=correct,
            accuracy_percentage=round(correct / total * 100, 2) if total else 0.0,
            avg_confidence=0.0 if pd.isna(row["avg_confidence"]) else round(float(row["avg_confidence"]), 4),
            avg_probability_accuracy=(
                0.0 if pd.isna(row["avg_probability_accuracy"])
                else round(float(row["avg_probability_accuracy"]), 4)
            ),
        ))
    return stats


class HttpPredictionProvider(PredictionProvider, PullSource):
    """
    Reads and maintains server-side predictions.

    Remote procedures are preferred; when one is missing the provider
    falls back to plain table queries that produce the same result.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = constants.LIGHT_LOOKUP_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        if not base_url:
            raise ConfigurationError("api_url", "prediction provider needs a base URL")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json", "Content-Type": "application/json"})
        if api_key:
            self.session.headers.update({"apikey": api_key, "Authorization": f"Bearer {api_key}"})

    @classmethod
    def from_config(cls, config) -> "HttpPredictionProvider":
        return cls(config.api_url, config.api_key, timeout=config.lookup_timeout)

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Make an API request, mapping failures onto provider errors.

        Raises:
            AuthenticationError: 401/403
            ServiceError: any other 4xx/5xx
            RequestTimeoutError: deadline exceeded
            NetworkError: connection failed
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self.session.request(
                method, url, params=params, json=json, headers=headers, timeout=self.timeout
            )
        except requests.exceptions.Timeout as e:
            raise RequestTimeoutError(SOURCE, self.timeout, e) from e
        except requests.exceptions.ConnectionError as e:
            raise NetworkError(SOURCE, "Connection failed", original_error=e) from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(SOURCE, original_error=e) from e

        if response.status_code in (401, 403):
            raise AuthenticationError(SOURCE, "credentials rejected", status_code=response.status_code)
        if response.status_code >= 400:
            raise ServiceError(SOURCE, response.text[:200] or response.reason, status_code=response.status_code)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ServiceError(SOURCE, "invalid JSON response", original_error=e) from e

    def _rpc(self, function: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("POST", f"rest/v1/rpc/{function}", json=payload or {})

    async def _run(self, fn, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))

    # ------------------------------------------------------------------
    # Predictions

    def fetch_prediction(self, home_team: str, away_team: str) -> Optional[Prediction]:
        """Latest unexpired prediction for the exact fixture, or None."""
        make_pair_key(home_team, away_team)
        rows = self._request("GET", "rest/v1/predictions", params={
            "select": "*",
            "home_team": f"ilike.{canonicalize_team_name(home_team)}",
            "away_team": f"ilike.{canonicalize_team_name(away_team)}",
            "expires_at": f"gt.{_utc_now().isoformat()}",
            "order": "created_at.desc",
            "limit": "1",
        })
        if not rows:
            return None
        return Prediction.from_row(rows[0])

    async def get_prediction(self, home_team: str, away_team: str) -> Optional[Prediction]:
        return await self._run(self.fetch_prediction, home_team, away_team)

    def list_recent(self, table: str = "predictions", limit: int = constants.MAX_RECORDS) -> List[Dict[str, Any]]:
        rows = self._request("GET", f"rest/v1/{table}", params={
            "select": "*",
            "order": "created_at.desc",
            "limit": str(limit),
        })
        return list(rows or [])

    async def fetch_latest(self, table: str, limit: int) -> List[Dict[str, Any]]:
        return await self._run(self.list_recent, table, limit)

    # ------------------------------------------------------------------
    # Accuracy

    def fetch_accuracy_stats(
        self,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        model_type: Optional[str] = None,
    ) -> List[AccuracyStat]:
        try:
            rows = self._rpc("get_prediction_accuracy_stats", {
                "date_from": date_from,
                "date_to": date_to,
                "model_type": model_type,
            })
            if rows:
                return [AccuracyStat.from_row(row) for row in rows]
            return _no_data_stats()
        except ServiceError as e:
            if isinstance(e, AuthenticationError):
                raise
            logger.info("Accuracy function unavailable, computing from rows: %s", e)

        params: Dict[str, Any] = {
            "select": "prediction_type,prediction_correct,confidence_score,probability_accuracy",
            "prediction_correct": "not.is.null",
        }
        created = []
        if date_from:
            created.append(f"created_at.gte.{date_from}")
        if date_to:
            created.append(f"created_at.lte.{date_to}")
        if created:
            params["and"] = f"({','.join(created)})"
        if model_type:
            params["prediction_type"] = f"eq.{model_type}"
        rows = self._request("GET", "rest/v1/predictions", params=params)
        return summarize_accuracy(list(rows or []))

    async def get_accuracy_stats(
        self,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        model_type: Optional[str] = None,
    ) -> List[AccuracyStat]:
        return await self._run(self.fetch_accuracy_stats, date_from, date_to, model_type)

    # ------------------------------------------------------------------
    # Maintenance

    def request_update(self) -> bool:
        """Ask the backend to refresh predictions; True when it accepted."""
        try:
            self._rpc("update_enhanced_predictions")
            return True
        except ServiceError as e:
            if isinstance(e, AuthenticationError):
                raise
            logger.info("Update function unavailable, touching rows instead: %s", e)

        try:
            self._request(
                "PATCH",
                "rest/v1/predictions",
                params={"expires_at": f"gt.{_utc_now().isoformat()}"},
                json={"updated_at": _utc_now().isoformat()},
                headers={"Prefer": "return=minimal"},
            )
        except ServiceError as e:
            logger.warning("Prediction update failed: %s", e)
            return False
        return True

    async def trigger_update(self) -> bool:
        return await self._run(self.request_update)

    def cleanup_expired(self) -> int:
        """Remove stale predictions; returns how many rows went."""
        try:
            result = self._rpc("cleanup_expired_predictions")
            return int(result or 0)
        except ServiceError as e:
            if isinstance(e, AuthenticationError):
                raise
            logger.info("Cleanup function unavailable, deleting directly: %s", e)

        cutoff = (_utc_now() - timedelta(days=EXPIRED_RETENTION_DAYS)).isoformat()
        rows = self._request(
            "DELETE",
            "rest/v1/predictions",
            params={"expires_at": f"lt.{cutoff}", "select": "id"},
            headers={"Prefer": "return=representation"},
        )
        deleted = len(rows or [])
        logger.info("Removed %d expired predictions", deleted)
        return deleted

    def check_freshness(self, max_age_hours: float = 24.0) -> Dict[str, Any]:
        """Age of the newest prediction row."""
        rows = self.list_recent(limit=1)
        if not rows or not rows[0].get("created_at"):
            return {"fresh": False, "latest": None, "age_hours": None}
        latest = pd.to_datetime(rows[0]["created_at"], utc=True)
        age_hours = (pd.Timestamp(_utc_now()) - latest).total_seconds() / 3600
        return {
            "fresh": age_hours <= max_age_hours,
            "latest": latest.isoformat(),
            "age_hours": round(age_hours, 2),
        }

    async def initialize(self) -> bool:
        """Check the accuracy function; False when the backend lacks it."""
        try:
            await self._run(self._rpc, "get_prediction_accuracy_stats", {})
        except AuthenticationError:
            raise
        except ServiceError as e:
            logger.warning("Prediction backend check failed: %s", e)
            return False
        return True

    def close(self) -> None:
        self.session.close()
