"""Per-pair-key in-flight markers."""

from typing import Set, Union
import threading

from matchcast.normalization.ids import PairKey

KeyLike = Union[PairKey, str]


class InFlightTracker:
    """
    Set-before-call, clear-after marker per pair key.

    ``acquire`` returns True only for the caller that placed the marker;
    everyone else sees the key as busy until ``release``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._inflight: Set[str] = set()

    def acquire(self, key: KeyLike) -> bool:
        with self._lock:
            if str(key) in self._inflight:
                return False
            self._inflight.add(str(key))
            return True

    def release(self, key: KeyLike) -> None:
        with self._lock:
            self._inflight.discard(str(key))

    def is_in_flight(self, key: KeyLike) -> bool:
        with self._lock:
            return str(key) in self._inflight

    def __len__(self) -> int:
        with self._lock:
            return len(self._inflight)
