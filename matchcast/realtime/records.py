"""In-memory record list maintained from push events."""

from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional
import logging
import threading

from matchcast import constants
from matchcast.ingestion.base import EVENT_DELETE, EVENT_INSERT, EVENT_UPDATE, PushEvent

logger = logging.getLogger(__name__)


class RecordStore:
    """
    Rows keyed by id, newest arrival last internally.

    Last writer wins. INSERT adds the row as newest (replacing a known id),
    UPDATE replaces a known row where it stands and ignores unknown ids,
    DELETE removes it. The oldest rows are dropped beyond ``max_records``.
    """

    def __init__(self, max_records: int = constants.MAX_RECORDS) -> None:
        self.max_records = max(1, int(max_records))
        self._rows: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        self._lock = threading.Lock()

    def apply(self, event: PushEvent) -> bool:
        record_id = event.record_id
        if record_id is None:
            logger.warning("Dropping %s event without a record id", event.event_type)
            return False

        with self._lock:
            if event.event_type == EVENT_DELETE:
                return self._rows.pop(record_id, None) is not None
            if event.event_type == EVENT_UPDATE:
                if record_id not in self._rows:
                    logger.debug("Ignoring update for unknown record %s", record_id)
                    return False
                self._rows[record_id] = dict(event.new)
                return True
            if event.event_type == EVENT_INSERT:
                self._rows[record_id] = dict(event.new)
                self._rows.move_to_end(record_id)
                self._trim()
                return True
        logger.debug("Ignoring unknown event type %s", event.event_type)
        return False

    def replace_all(self, rows: Iterable[Dict[str, Any]]) -> None:
        """Swap in a polled snapshot given newest first."""
        with self._lock:
            self._rows.clear()
            for row in reversed(list(rows)):
                if row.get("id") is None:
                    continue
                self._rows[str(row["id"])] = dict(row)
            self._trim()

    def _trim(self) -> None:
        while len(self._rows) > self.max_records:
            self._rows.popitem(last=False)

    def get(self, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self._rows.get(str(record_id))
            return dict(row) if row is not None else None

    def records(self) -> List[Dict[str, Any]]:
        """Rows newest first."""
        with self._lock:
            return [dict(row) for row in reversed(self._rows.values())]

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)
