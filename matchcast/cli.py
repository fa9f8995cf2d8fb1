"""CLI entry points."""

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
import argparse
import asyncio
import json
import logging
import sys
import uuid

import pandas as pd

from matchcast.config import Config
from matchcast.coordination.session import PredictionSession
from matchcast.exceptions import MatchCastError
from matchcast.features.extractor import FeatureExtractor
from matchcast.ingestion.matches import HttpMatchHistoryProvider
from matchcast.ingestion.predictions import HttpPredictionProvider
from matchcast.models.baseline import predict_baseline
from matchcast.models.ensemble import EnsemblePredictor
from matchcast.models.markets import MarketOdds
from matchcast.normalization.ids import make_pair_key
from matchcast.ops.alerts import AlertManager, LoggingAlert, WebhookAlert
from matchcast.ops.logging import configure_logging
from matchcast.ops.metrics import get_metrics_recorder
from matchcast.schema import Match
from matchcast.storage.cache import MemoryCache

logger = logging.getLogger(__name__)


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True, default=str))


def load_matches(path: str) -> List[Match]:
    """Read historical matches from a CSV or JSON file."""
    source = Path(path)
    if not source.exists():
        raise FileNotFoundError(f"Matches file not found: {source}")
    if source.suffix.lower() == ".json":
        rows = json.loads(source.read_text(encoding="utf-8"))
        if isinstance(rows, dict):
            rows = rows.get("matches", [])
    else:
        frame = pd.read_csv(source)
        rows = frame.astype(object).where(frame.notna(), None).to_dict(orient="records")
    return [Match.from_row(row) for row in rows]


def _load_odds(raw: Optional[str]) -> Optional[MarketOdds]:
    if not raw:
        return None
    candidate = Path(raw)
    text = candidate.read_text(encoding="utf-8") if candidate.exists() else raw
    return MarketOdds.from_dict(json.loads(text))


def _build_alerts(config: Config) -> AlertManager:
    handlers = [LoggingAlert()]
    if config.alert_webhook_url:
        handlers.append(WebhookAlert(config.alert_webhook_url))
    return AlertManager(handlers)


def run_predict(
    config: Config,
    home_team: str,
    away_team: str,
    matches_path: str,
    ensemble: bool = False,
    odds: Optional[str] = None,
) -> int:
    make_pair_key(home_team, away_team)
    matches = load_matches(matches_path)
    extractor = FeatureExtractor.from_config(config)
    if ensemble:
        predictor = EnsemblePredictor(extractor, min_matches=config.min_matches)
        result = predictor.predict(matches, home_team, away_team, _load_odds(odds))
        _emit(result.to_dict())
    else:
        prediction = predict_baseline(matches, home_team, away_team, extractor, config.min_matches)
        _emit(prediction.to_dict())
    logger.info("Predicted %s vs %s from %d matches", home_team, away_team, len(matches))
    return 0


async def _fetch(config: Config, home_team: str, away_team: str) -> Optional[Dict[str, Any]]:
    predictions = HttpPredictionProvider.from_config(config)
    matches = HttpMatchHistoryProvider.from_config(config, cache=MemoryCache(config.cache_max_entries))
    session = PredictionSession.from_config(config, predictions, matches, alerts=_build_alerts(config))
    try:
        await session.initialize()
        prediction = await session.get_prediction(home_team, away_team)
        return prediction.to_dict() if prediction is not None else None
    finally:
        session.close()
        predictions.close()


def run_fetch(config: Config, home_team: str, away_team: str) -> int:
    payload = asyncio.run(_fetch(config, home_team, away_team))
    if payload is None:
        logger.warning("No prediction available for %s vs %s", home_team, away_team)
        return 1
    _emit(payload)
    return 0


def run_accuracy(
    config: Config,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    model_type: Optional[str] = None,
) -> int:
    provider = HttpPredictionProvider.from_config(config)
    try:
        stats = provider.fetch_accuracy_stats(date_from, date_to, model_type)
    finally:
        provider.close()
    _emit([stat.to_dict() for stat in stats])
    return 0


def run_trigger_update(config: Config) -> int:
    provider = HttpPredictionProvider.from_config(config)
    try:
        updated = provider.request_update()
    finally:
        provider.close()
    _emit({"updated": updated})
    return 0 if updated else 1


def run_show_config(config: Config) -> int:
    payload = config.to_dict()
    if payload.get("api_key"):
        payload["api_key"] = "***"
    _emit(payload)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="matchcast", description="Football match predictions")
    parser.add_argument("--config", dest="config_path", help="Path to .env or JSON config file")
    parser.add_argument("--log-level", dest="log_level", help="Override MATCHCAST_LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    predict = subparsers.add_parser("predict", help="Offline prediction from a matches file")
    predict.add_argument("--home", dest="home_team", required=True, help="Home team name")
    predict.add_argument("--away", dest="away_team", required=True, help="Away team name")
    predict.add_argument("--matches", dest="matches_path", required=True, help="CSV or JSON of past matches")
    predict.add_argument("--ensemble", action="store_true", help="Use the ensemble with market picks")
    predict.add_argument("--odds", dest="odds", help="Market odds as JSON text or a JSON file path")

    fetch = subparsers.add_parser("fetch", help="Resolve a prediction through the configured backend")
    fetch.add_argument("--home", dest="home_team", required=True, help="Home team name")
    fetch.add_argument("--away", dest="away_team", required=True, help="Away team name")

    accuracy = subparsers.add_parser("accuracy", help="Prediction accuracy by model type")
    accuracy.add_argument("--from", dest="date_from", help="Start date (YYYY-MM-DD)")
    accuracy.add_argument("--to", dest="date_to", help="End date (YYYY-MM-DD)")
    accuracy.add_argument("--model-type", dest="model_type", help="Restrict to one model type")

    subparsers.add_parser("trigger-update", help="Ask the backend to refresh predictions")
    subparsers.add_parser("show-config", help="Print the resolved configuration")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(run_id=uuid.uuid4().hex[:8], level=args.log_level)
    metrics = get_metrics_recorder()

    try:
        config = Config.load(args.config_path)
        with metrics.timer(f"cli.{args.command}"):
            if args.command == "predict":
                return run_predict(
                    config,
                    args.home_team,
                    args.away_team,
                    args.matches_path,
                    ensemble=args.ensemble,
                    odds=getattr(args, "odds", None),
                )
            if args.command == "fetch":
                return run_fetch(config, args.home_team, args.away_team)
            if args.command == "accuracy":
                return run_accuracy(
                    config,
                    date_from=getattr(args, "date_from", None),
                    date_to=getattr(args, "date_to", None),
                    model_type=getattr(args, "model_type", None),
                )
            if args.command == "trigger-update":
                return run_trigger_update(config)
            if args.command == "show-config":
                return run_show_config(config)
    except (MatchCastError, FileNotFoundError, ValueError) as e:
        logger.error("%s failed: %s", args.command, e)
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
