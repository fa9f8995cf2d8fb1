"""Match history over a PostgREST-style HTTP API (aiohttp)."""

from typing import Any, Callable, Dict, List, Optional
import asyncio
import logging

import aiohttp

from matchcast import constants
from matchcast.exceptions import (
    AbortedError,
    AuthenticationError,
    ConfigurationError,
    DataNotFoundError,
    NetworkError,
    RequestTimeoutError,
    ServiceError,
    ValidationError,
)
from matchcast.ingestion.base import MODE_PAIRING, MODE_RETURN_MATCHES, QUERY_MODES, MatchHistoryProvider
from matchcast.normalization.ids import canonicalize_team_name, make_pair_key
from matchcast.schema import Match
from matchcast.storage.cache import CacheStore

logger = logging.getLogger(__name__)

SOURCE = "match history"
MATCH_COLUMNS = (
    "id,home_team,away_team,half_time_home_goals,half_time_away_goals,"
    "full_time_home_goals,full_time_away_goals,match_time,league,season"
)
RESULT_LIMIT = 50


def _quote(team: str) -> str:
    return '"' + team.replace('"', '\\"') + '"'


def build_match_filter(home_team: str, away_team: str, mode: str) -> str:
    """PostgREST filter for fixtures between the two teams."""
    home, away = _quote(home_team), _quote(away_team)
    pairing = f"and(home_team.ilike.{home},away_team.ilike.{away})"
    if mode == MODE_PAIRING:
        return f"({pairing})"
    reverse = f"and(home_team.ilike.{away},away_team.ilike.{home})"
    return f"({pairing},{reverse})"


class HttpMatchHistoryProvider(MatchHistoryProvider):
    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        cache: Optional[CacheStore] = None,
        ttl_seconds: int = 300,
        default_timeout: float = constants.MATCH_LOOKUP_TIMEOUT,
        session_factory: Callable[..., aiohttp.ClientSession] = aiohttp.ClientSession,
    ) -> None:
        if not base_url:
            raise ConfigurationError("api_url", "match history provider needs a base URL")
        self._url = f"{base_url.rstrip('/')}/rest/v1/matches"
        self._api_key = api_key
        self._cache = cache
        self._ttl = ttl_seconds
        self._default_timeout = default_timeout
        self._session_factory = session_factory

    @classmethod
    def from_config(cls, config, cache: Optional[CacheStore] = None) -> "HttpMatchHistoryProvider":
        return cls(
            config.api_url,
            config.api_key,
            cache=cache,
            ttl_seconds=config.match_cache_ttl,
            default_timeout=config.match_timeout,
        )

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def get_matches_between_teams(
        self,
        home_team: str,
        away_team: str,
        signal: Optional[asyncio.Event] = None,
        timeout: Optional[float] = None,
        mode: str = MODE_RETURN_MATCHES,
    ) -> List[Match]:
        key = make_pair_key(home_team, away_team)
        if mode not in QUERY_MODES:
            raise ValidationError("mode", f"expected one of {', '.join(QUERY_MODES)}")
        if signal is not None and signal.is_set():
            raise AbortedError(SOURCE)

        cache_key = f"matches:{key}:{mode}"
        if self._cache is not None:
            cached = self._cache.get(cache_key)
            if cached:
                return [Match.from_row(row) for row in cached]

        timeout = timeout or self._default_timeout
        rows = await self._fetch_with_signal(
            canonicalize_team_name(home_team), canonicalize_team_name(away_team), mode, timeout, signal
        )
        if not rows:
            raise DataNotFoundError(home_team, away_team)

        if self._cache is not None:
            self._cache.set(cache_key, rows, self._ttl)
        logger.debug("Fetched %d matches for %s (%s)", len(rows), key, mode)
        return [Match.from_row(row) for row in rows]

    async def _fetch_with_signal(
        self,
        home_team: str,
        away_team: str,
        mode: str,
        timeout: float,
        signal: Optional[asyncio.Event],
    ) -> List[Dict[str, Any]]:
        fetch = asyncio.ensure_future(self._fetch(home_team, away_team, mode, timeout))
        if signal is None:
            return await fetch

        waiter = asyncio.ensure_future(signal.wait())
        try:
            done, _ = await asyncio.wait({fetch, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if not waiter.done():
                waiter.cancel()
        if fetch not in done:
            fetch.cancel()
            raise AbortedError(SOURCE)
        return fetch.result()

    async def _fetch(self, home_team: str, away_team: str, mode: str, timeout: float) -> List[Dict[str, Any]]:
        params = {
            "select": MATCH_COLUMNS,
            "or": build_match_filter(home_team, away_team, mode),
            "order": "match_time.desc",
            "limit": str(RESULT_LIMIT),
        }
        client_timeout = aiohttp.ClientTimeout(total=timeout)
        try:
            async with self._session_factory(timeout=client_timeout) as session:
                async with session.get(self._url, params=params, headers=self._headers()) as response:
                    if response.status in (401, 403):
                        raise AuthenticationError(SOURCE, "credentials rejected", status_code=response.status)
                    if response.status >= 400:
                        body = await response.text()
                        raise ServiceError(SOURCE, body[:200] or response.reason, status_code=response.status)
                    payload = await response.json()
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(SOURCE, timeout, e) from e
        except aiohttp.ClientError as e:
            raise NetworkError(SOURCE, original_error=e) from e

        if not isinstance(payload, list):
            raise ServiceError(SOURCE, "unexpected response shape")
        return payload
