"""Storage and caching."""

from matchcast.storage.cache import CacheStore, MemoryCache, FileCache
from matchcast.storage.result_cache import ResultCache, build_cache_store

__all__ = ["CacheStore", "MemoryCache", "FileCache", "ResultCache", "build_cache_store"]
