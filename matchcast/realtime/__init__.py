"""Realtime prediction sync."""

from matchcast.realtime.state import (
    ConnectionEvent,
    ConnectionState,
    ConnectionStateMachine,
    ConnectionStatus,
    TRANSITIONS,
)
from matchcast.realtime.records import RecordStore
from matchcast.realtime.sync import RealtimeSyncManager

__all__ = [
    "ConnectionEvent",
    "ConnectionState",
    "ConnectionStateMachine",
    "ConnectionStatus",
    "TRANSITIONS",
    "RecordStore",
    "RealtimeSyncManager",
]
