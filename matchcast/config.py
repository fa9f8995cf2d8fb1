"""Configuration for the prediction engine."""

from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Optional, Dict, List, Mapping
import json
import os

from matchcast import constants

_ENV_PREFIX = "MATCHCAST_"
_DEFAULT_REALTIME_EVENTS = ["INSERT", "UPDATE", "DELETE"]
_MIN_REALTIME_RETRIES = 1
_MAX_REALTIME_RETRIES = 10


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def _coerce_float(value: Optional[str], default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _coerce_int(value: Optional[str], default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _coerce_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _coerce_list(value: Optional[str], default: List[str]) -> List[str]:
    if value is None or value == "":
        return list(default)
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return list(default)


def _parse_env_file(path: Path) -> Dict[str, str]:
    data: Dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        data[key.strip()] = _strip_quotes(value.strip())
    return data


def _load_config_data(path: Path) -> Dict[str, str]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    if path.suffix.lower() == ".json":
        payload = json.loads(path.read_text(encoding="utf-8"))
        return {
            str(k): ",".join(str(i) for i in v) if isinstance(v, list) else str(v)
            for k, v in payload.items()
        }
    return _parse_env_file(path)


@dataclass
class Config:
    # Provider
    api_url: str = ""
    api_key: str = ""

    # Caching
    cache_backend: str = "memory"
    cache_dir: str = ".cache"
    cache_max_entries: int = 100
    prediction_cache_ttl: int = 900
    match_cache_ttl: int = 300

    # Request coordination
    cooldown_seconds: float = constants.COOLDOWN_SECONDS
    debounce_ms: int = constants.DEBOUNCE_MS
    match_timeout: float = constants.MATCH_LOOKUP_TIMEOUT
    lookup_timeout: float = constants.LIGHT_LOOKUP_TIMEOUT
    enable_baseline: bool = True

    # Realtime sync
    realtime_enabled: bool = True
    realtime_table: str = "predictions"
    realtime_events: List[str] = field(default_factory=lambda: list(_DEFAULT_REALTIME_EVENTS))
    realtime_max_retries: int = constants.REALTIME_MAX_RETRIES
    realtime_base_delay: float = constants.REALTIME_BASE_DELAY
    realtime_max_delay: float = constants.REALTIME_MAX_DELAY
    polling_interval: float = constants.POLLING_INTERVAL
    max_records: int = constants.MAX_RECORDS

    # Computation worker
    worker_mode: str = "thread"
    worker_max_workers: int = 1

    # Model windows
    min_matches: int = constants.MIN_MATCHES
    form_window: int = constants.FORM_WINDOW
    goal_window: int = constants.GOAL_WINDOW
    h2h_window: int = constants.H2H_WINDOW
    league_avg_goals: float = constants.LEAGUE_AVG_GOALS

    # Alerts
    alert_webhook_url: str = ""

    def __post_init__(self) -> None:
        self.realtime_max_retries = max(
            _MIN_REALTIME_RETRIES, min(_MAX_REALTIME_RETRIES, int(self.realtime_max_retries))
        )
        self.polling_interval = max(constants.MIN_POLLING_INTERVAL, float(self.polling_interval))
        self.realtime_events = [event.upper() for event in self.realtime_events]

    @classmethod
    def _from_mapping(cls, data: Mapping[str, str], base: "Config") -> "Config":
        def get(name: str) -> Optional[str]:
            return data.get(_ENV_PREFIX + name)

        return cls(
            api_url=(get("API_URL") or base.api_url).rstrip("/"),
            api_key=get("API_KEY") or base.api_key,
            cache_backend=(get("CACHE_BACKEND") or base.cache_backend).lower(),
            cache_dir=get("CACHE_DIR") or base.cache_dir,
            cache_max_entries=_coerce_int(get("CACHE_MAX_ENTRIES"), base.cache_max_entries),
            prediction_cache_ttl=_coerce_int(get("PREDICTION_CACHE_TTL"), base.prediction_cache_ttl),
            match_cache_ttl=_coerce_int(get("MATCH_CACHE_TTL"), base.match_cache_ttl),
            cooldown_seconds=_coerce_float(get("COOLDOWN_SECONDS"), base.cooldown_seconds),
            debounce_ms=_coerce_int(get("DEBOUNCE_MS"), base.debounce_ms),
            match_timeout=_coerce_float(get("MATCH_TIMEOUT"), base.match_timeout),
            lookup_timeout=_coerce_float(get("LOOKUP_TIMEOUT"), base.lookup_timeout),
            enable_baseline=_coerce_bool(get("ENABLE_BASELINE"), base.enable_baseline),
            realtime_enabled=_coerce_bool(get("REALTIME_ENABLED"), base.realtime_enabled),
            realtime_table=get("REALTIME_TABLE") or base.realtime_table,
            realtime_events=_coerce_list(get("REALTIME_EVENTS"), base.realtime_events),
            realtime_max_retries=_coerce_int(get("REALTIME_MAX_RETRIES"), base.realtime_max_retries),
            realtime_base_delay=_coerce_float(get("REALTIME_BASE_DELAY"), base.realtime_base_delay),
            realtime_max_delay=_coerce_float(get("REALTIME_MAX_DELAY"), base.realtime_max_delay),
            polling_interval=_coerce_float(get("POLLING_INTERVAL"), base.polling_interval),
            max_records=_coerce_int(get("MAX_RECORDS"), base.max_records),
            worker_mode=(get("WORKER_MODE") or base.worker_mode).lower(),
            worker_max_workers=_coerce_int(get("WORKER_MAX_WORKERS"), base.worker_max_workers),
            min_matches=_coerce_int(get("MIN_MATCHES"), base.min_matches),
            form_window=_coerce_int(get("FORM_WINDOW"), base.form_window),
            goal_window=_coerce_int(get("GOAL_WINDOW"), base.goal_window),
            h2h_window=_coerce_int(get("H2H_WINDOW"), base.h2h_window),
            league_avg_goals=_coerce_float(get("LEAGUE_AVG_GOALS"), base.league_avg_goals),
            alert_webhook_url=get("ALERT_WEBHOOK_URL") or base.alert_webhook_url,
        )

    @classmethod
    def from_env(cls) -> "Config":
        return cls._from_mapping(os.environ, cls())

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "Config":
        """Environment config, overlaid with a .env or JSON file when given."""
        env_config = cls.from_env()
        if not config_path:
            return env_config
        file_data = _load_config_data(Path(config_path))
        return cls._from_mapping(file_data, env_config)

    def to_dict(self) -> Dict[str, str]:
        return {k: str(v) for k, v in asdict(self).items()}

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0
