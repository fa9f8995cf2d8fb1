"""Cache interfaces."""

from collections import OrderedDict
from pathlib import Path
from typing import Any, Callable, Optional, Tuple, Union
import hashlib
import json
import logging
import threading
import time

logger = logging.getLogger(__name__)


class CacheStore:
    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        raise NotImplementedError

    def invalidate(self, key: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemoryCache(CacheStore):
    """In-process TTL cache with least-recently-used eviction."""

    def __init__(
        self,
        max_entries: int = 100,
        default_ttl: Optional[float] = 300,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._data: "OrderedDict[str, Tuple[Any, Optional[float]]]" = OrderedDict()
        self._max_entries = max(1, int(max_entries))
        self._default_ttl = default_ttl
        self._clock = clock
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._data.get(key)
            if not entry:
                return None
            value, expires_at = entry
            if expires_at is not None and self._clock() >= expires_at:
                self._data.pop(key, None)
                return None
            self._data.move_to_end(key)
            return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        if ttl is not None and ttl <= 0:
            return
        expires_at = self._clock() + ttl if ttl is not None else None
        with self._lock:
            self._data[key] = (value, expires_at)
            self._data.move_to_end(key)
            while len(self._data) > self._max_entries:
                evicted, _ = self._data.popitem(last=False)
                logger.debug("Evicted cache key %s", evicted)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class FileCache(CacheStore):
    """JSON-file cache; values must be JSON serializable."""

    def __init__(
        self,
        cache_dir: Union[str, Path],
        default_ttl: Optional[float] = 300,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._dir = Path(cache_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._default_ttl = default_ttl
        self._clock = clock
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        path = self._path_for_key(key)
        if not path.exists():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Unreadable cache file %s: %s", path.name, e)
            return None
        expires_at = payload.get("expires_at")
        if expires_at is not None and self._clock() >= float(expires_at):
            try:
                path.unlink()
            except OSError:
                pass
            return None
        return payload.get("value")

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        if ttl is not None and ttl <= 0:
            return
        payload = {
            "expires_at": self._clock() + ttl if ttl is not None else None,
            "value": value,
        }
        path = self._path_for_key(key)
        with self._lock:
            path.write_text(json.dumps(payload), encoding="utf-8")

    def invalidate(self, key: str) -> None:
        path = self._path_for_key(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return

    def clear(self) -> None:
        with self._lock:
            for path in self._dir.glob("*.json"):
                try:
                    path.unlink()
                except OSError:
                    continue

    def _path_for_key(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._dir / f"{digest}.json"
