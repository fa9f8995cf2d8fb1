"""User-facing notifications for connection and service events.

Alerts are reserved for genuine failures: a realtime connection that
dropped or came back, and backend functions that could not be reached.
"No prediction yet" is never an alert.

Usage:
    from matchcast.ops.alerts import AlertManager, LoggingAlert, CallbackAlert

    manager = AlertManager()
    manager.add_handler(LoggingAlert())
    manager.add_handler(CallbackAlert(toast.show))

    manager.send_connection_lost(attempts=2)
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass, field
from abc import ABC, abstractmethod

import requests

logger = logging.getLogger(__name__)


@dataclass
class Alert:
    """Base alert structure."""
    alert_type: str  # 'connection', 'system'
    title: str
    message: str
    priority: str = "normal"  # 'low', 'normal', 'high', 'urgent'
    data: Optional[Dict[str, Any]] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'alert_type': self.alert_type,
            'title': self.title,
            'message': self.message,
            'priority': self.priority,
            'data': self.data,
            'timestamp': self.timestamp.isoformat(),
        }


class AlertHandler(ABC):
    """Abstract base class for alert handlers."""

    @abstractmethod
    def send(self, alert: Alert) -> bool:
        """
        Send an alert through this handler.

        Returns:
            True if alert was sent successfully
        """

    @property
    @abstractmethod
    def name(self) -> str:
        """Handler name for logging."""


class LoggingAlert(AlertHandler):
    """Send alerts to Python logging system."""

    PRIORITY_LEVELS = {
        'low': logging.DEBUG,
        'normal': logging.INFO,
        'high': logging.WARNING,
        'urgent': logging.ERROR,
    }

    def __init__(self, logger_name: str = "matchcast.alerts"):
        self._logger = logging.getLogger(logger_name)

    @property
    def name(self) -> str:
        return "logging"

    def send(self, alert: Alert) -> bool:
        level = self.PRIORITY_LEVELS.get(alert.priority, logging.INFO)
        self._logger.log(
            level,
            "[%s] %s: %s",
            alert.alert_type,
            alert.title,
            alert.message,
            extra={'alert_data': alert.data},
        )
        return True


class CallbackAlert(AlertHandler):
    """Hand alerts to a callable, e.g. a UI toast."""

    def __init__(self, callback: Callable[[Alert], Any], handler_name: str = "callback"):
        self.callback = callback
        self._name = handler_name

    @property
    def name(self) -> str:
        return self._name

    def send(self, alert: Alert) -> bool:
        result = self.callback(alert)
        return True if result is None else bool(result)


class WebhookAlert(AlertHandler):
    """POST alerts as JSON to a webhook URL."""

    def __init__(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: int = 10,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.headers = headers or {"Content-Type": "application/json"}
        self.timeout = timeout
        self._session = session or requests.Session()

    @property
    def name(self) -> str:
        return f"webhook:{self.url[:30]}"

    def send(self, alert: Alert) -> bool:
        try:
            response = self._session.post(
                self.url,
                json=self._format_payload(alert),
                headers=self.headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            return True
        except requests.RequestException as e:
            logger.error("Webhook alert network error: %s", e)
            return False

    def _format_payload(self, alert: Alert) -> Dict[str, Any]:
        return {
            'text': f"*{alert.title}*\n{alert.message}",
            'alert': alert.to_dict(),
        }


class AlertManager:
    """
    Fans alerts out to every registered handler.

    A handler that raises is logged and reported as failed; the remaining
    handlers still run.
    """

    def __init__(self, handlers: Optional[List[AlertHandler]] = None, max_history: int = 100):
        self._handlers: List[AlertHandler] = list(handlers or [])
        self._alert_history: List[Alert] = []
        self._max_history = max_history

    def add_handler(self, handler: AlertHandler) -> None:
        self._handlers.append(handler)
        logger.info("Added alert handler: %s", handler.name)

    def remove_handler(self, handler_name: str) -> bool:
        for i, h in enumerate(self._handlers):
            if h.name == handler_name:
                self._handlers.pop(i)
                return True
        return False

    @property
    def history(self) -> List[Alert]:
        return list(self._alert_history)

    def send(self, alert: Alert) -> Dict[str, bool]:
        results = {}
        for handler in self._handlers:
            try:
                results[handler.name] = handler.send(alert)
            except Exception as e:
                logger.error("Handler %s failed: %s", handler.name, e)
                results[handler.name] = False

        self._alert_history.append(alert)
        if len(self._alert_history) > self._max_history:
            self._alert_history = self._alert_history[-self._max_history:]
        return results

    def send_connection_lost(self, attempts: int, error: Optional[str] = None) -> Dict[str, bool]:
        return self.send(Alert(
            alert_type='connection',
            title="Connection Lost",
            message=f"Live updates unavailable after {attempts} attempts; falling back to polling.",
            priority='high',
            data={'attempts': attempts, 'error': error},
        ))

    def send_connection_restored(self, attempts: int) -> Dict[str, bool]:
        return self.send(Alert(
            alert_type='connection',
            title="Connection Restored",
            message="Live updates are active again.",
            priority='normal',
            data={'attempts': attempts},
        ))

    def send_service_failure(self, service: str, message: str) -> Dict[str, bool]:
        return self.send(Alert(
            alert_type='system',
            title=f"{service} unavailable",
            message=message,
            priority='urgent',
            data={'service': service},
        ))
