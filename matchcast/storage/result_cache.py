"""Prediction cache keyed by team pair, with a negative-result cooldown map."""

from typing import Callable, Dict, Optional, Union
import logging
import threading
import time

from matchcast import constants
from matchcast.exceptions import ConfigurationError
from matchcast.normalization.ids import PairKey
from matchcast.schema import CacheEntry, Prediction
from matchcast.storage.cache import CacheStore, FileCache, MemoryCache

logger = logging.getLogger(__name__)

KeyLike = Union[PairKey, str]


def build_cache_store(config) -> CacheStore:
    """Create the CacheStore selected by ``config.cache_backend``."""
    backend = (config.cache_backend or "memory").lower()
    if backend == "memory":
        return MemoryCache(
            max_entries=config.cache_max_entries,
            default_ttl=config.prediction_cache_ttl,
        )
    if backend == "file":
        return FileCache(config.cache_dir, default_ttl=config.prediction_cache_ttl)
    raise ConfigurationError("cache_backend", f"unsupported backend '{backend}'")


class ResultCache:
    """
    Pair key -> Prediction store plus a cooldown sub-map.

    Positive entries live in the backing CacheStore (TTL is its concern).
    Negative entries ("no data found") live in a separate in-process map and
    are evicted when their cooldown expires.
    """

    def __init__(
        self,
        store: Optional[CacheStore] = None,
        ttl_seconds: Optional[float] = None,
        cooldown_seconds: float = constants.COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store if store is not None else MemoryCache()
        self._ttl = ttl_seconds
        self.cooldown_seconds = float(cooldown_seconds)
        self._clock = clock
        self._cooldowns: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _slot(key: KeyLike) -> str:
        return f"prediction:{key}"

    def get(self, key: KeyLike) -> Optional[Prediction]:
        raw = self._store.get(self._slot(key))
        if raw is None:
            return None
        return CacheEntry.from_dict(raw).prediction

    def put(self, key: KeyLike, prediction: Prediction) -> CacheEntry:
        """Store ``prediction``, replacing whatever the slot held."""
        entry = CacheEntry(fetched_at=self._clock(), prediction=prediction)
        self._store.set(self._slot(key), entry.to_dict(), self._ttl)
        logger.debug("Cached %s prediction for %s", prediction.provenance.value, key)
        return entry

    def invalidate(self, key: KeyLike) -> None:
        self._store.invalidate(self._slot(key))

    def record_no_data(self, key: KeyLike) -> CacheEntry:
        now = self._clock()
        entry = CacheEntry(fetched_at=now, cooldown_until=now + self.cooldown_seconds)
        with self._lock:
            self._cooldowns[str(key)] = entry
        logger.info("No data for %s; cooling down for %.0fs", key, self.cooldown_seconds)
        return entry

    def in_cooldown(self, key: KeyLike) -> bool:
        slot = str(key)
        with self._lock:
            entry = self._cooldowns.get(slot)
            if entry is None:
                return False
            if self._clock() < entry.cooldown_until:
                return True
            self._cooldowns.pop(slot, None)
        logger.debug("Cooldown expired for %s", slot)
        return False

    def cooldown_remaining(self, key: KeyLike) -> float:
        with self._lock:
            entry = self._cooldowns.get(str(key))
        if entry is None:
            return 0.0
        return max(0.0, entry.cooldown_until - self._clock())

    def clear_cooldown(self, key: KeyLike) -> None:
        with self._lock:
            self._cooldowns.pop(str(key), None)

    def clear(self) -> None:
        self._store.clear()
        with self._lock:
            self._cooldowns.clear()
