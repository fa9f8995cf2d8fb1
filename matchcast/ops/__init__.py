"""Operational helpers."""

from matchcast.ops.metrics import MetricsRecorder, InMemoryMetricsRecorder, get_metrics_recorder
from matchcast.ops.alerts import Alert, AlertHandler, AlertManager, LoggingAlert, CallbackAlert, WebhookAlert
from matchcast.ops.debounce import Debouncer

__all__ = [
    "MetricsRecorder",
    "InMemoryMetricsRecorder",
    "get_metrics_recorder",
    "Alert",
    "AlertHandler",
    "AlertManager",
    "LoggingAlert",
    "CallbackAlert",
    "WebhookAlert",
    "Debouncer",
]
