"""Provider adapters and the interfaces they implement."""

from matchcast.ingestion.base import (
    EVENT_DELETE,
    EVENT_INSERT,
    EVENT_UPDATE,
    MODE_PAIRING,
    MODE_RETURN_MATCHES,
    QUERY_MODES,
    EventListener,
    MatchHistoryProvider,
    PredictionProvider,
    PullSource,
    PushEvent,
    PushSource,
    Subscription,
)
from matchcast.ingestion.matches import HttpMatchHistoryProvider, build_match_filter
from matchcast.ingestion.predictions import HttpPredictionProvider, summarize_accuracy

__all__ = [
    "EVENT_DELETE",
    "EVENT_INSERT",
    "EVENT_UPDATE",
    "EventListener",
    "HttpMatchHistoryProvider",
    "HttpPredictionProvider",
    "MODE_PAIRING",
    "MODE_RETURN_MATCHES",
    "MatchHistoryProvider",
    "PredictionProvider",
    "PullSource",
    "PushEvent",
    "PushSource",
    "QUERY_MODES",
    "Subscription",
    "build_match_filter",
    "summarize_accuracy",
]
