"""TOML config loading, profiles and environment overrides."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

import structlog

log = structlog.get_logger(__name__)

# Default config search path (project root or cwd)
_CONFIG_DIR = Path(__file__).resolve().parent.parent.parent.parent / "config"
_CWD_CONFIG = Path.cwd() / "config"

BACKEND_MODES = ("graph_node", "checkpoint")

GRAPH_NODE_ENDPOINTS = {
    "registry": "https://d3ugkaojqkfud0.cloudfront.net/subgraphs/name/futarchy-complete-new-v3",
    "candles": "https://d3ugkaojqkfud0.cloudfront.net/subgraphs/name/algebra-proposal-candles-v1",
}

CHECKPOINT_ENDPOINTS = {
    "registry": "https://api.futarchy.fi/registry/graphql",
    "candles": "https://api.futarchy.fi/candles/graphql",
}

# (env var, section, key)
_ENV_OVERRIDES = [
    ("FUTARCHY_MODE", "backend", "mode"),
    ("CACHE_RESPONSE_TTL", "cache", "response_ttl_sec"),
    ("CACHE_REGISTRY_TTL", "cache", "registry_ttl_sec"),
    ("CACHE_CANDLES_TTL", "cache", "candles_ttl_sec"),
    ("CACHE_SPOT_TTL", "cache", "spot_ttl_sec"),
    ("ENABLE_WARMER", "warmer", "enabled"),
    ("WARMER_RETENTION_DAYS", "warmer", "retention_days"),
    ("WARMER_MAX_ENTRIES", "warmer", "max_entries"),
]


def _load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base. Override values take precedence."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _find_config_dir() -> Path:
    if _CWD_CONFIG.exists():
        return _CWD_CONFIG
    return _CONFIG_DIR


def _apply_env(raw: dict[str, Any], environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Overlay the supported environment variables onto the merged TOML config."""
    env = os.environ if environ is None else environ
    result = dict(raw)
    for var, section, key in _ENV_OVERRIDES:
        value = env.get(var)
        if value is None or value == "":
            continue
        result[section] = {**(result.get(section) or {}), key: value}
    return result


def load_config(profile: str | None = None) -> dict[str, Any]:
    """Load merged config from default.toml and optional profile overlay."""
    config_dir = _find_config_dir()
    default_path = config_dir / "default.toml"
    if not default_path.exists():
        return {}
    base = _load_toml(default_path)
    if profile:
        profile_path = config_dir / f"{profile}.toml"
        if profile_path.exists():
            overlay = _load_toml(profile_path)
            base = _deep_merge(base, overlay)
    return base


def get_settings(profile: str | None = None, environ: dict[str, str] | None = None) -> Settings:
    """Return Settings instance from merged config and environment."""
    raw = _apply_env(load_config(profile), environ)
    return Settings.from_dict(raw)


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in ("false", "0", "no", "off")


class Settings:
    """Application settings from TOML config."""

    def __init__(
        self,
        *,
        backend: dict[str, Any] | None = None,
        cache: dict[str, Any] | None = None,
        warmer: dict[str, Any] | None = None,
        spot: dict[str, Any] | None = None,
        http: dict[str, Any] | None = None,
        logging: dict[str, Any] | None = None,
    ):
        self.backend = backend or {}
        self.cache = cache or {}
        self.warmer = warmer or {}
        self.spot = spot or {}
        self.http = http or {}
        self.logging = logging or {}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Settings:
        return cls(
            backend=raw.get("backend"),
            cache=raw.get("cache"),
            warmer=raw.get("warmer"),
            spot=raw.get("spot"),
            http=raw.get("http"),
            logging=raw.get("logging"),
        )

    # Convenience accessors with defaults
    @property
    def backend_mode(self) -> str:
        mode = str(self.backend.get("mode", "graph_node")).lower()
        if mode not in BACKEND_MODES:
            log.warning("unknown_backend_mode", mode=mode, fallback="graph_node")
            return "graph_node"
        return mode

    @property
    def is_checkpoint(self) -> bool:
        return self.backend_mode == "checkpoint"

    def _endpoint(self, name: str) -> str:
        defaults = CHECKPOINT_ENDPOINTS if self.is_checkpoint else GRAPH_NODE_ENDPOINTS
        section = self.backend.get(self.backend_mode) or {}
        return section.get(f"{name}_url", defaults[name])

    @property
    def registry_url(self) -> str:
        return self._endpoint("registry")

    @property
    def candles_url(self) -> str:
        return self._endpoint("candles")

    @property
    def aggregator_address(self) -> str:
        return str(
            self.backend.get("aggregator_address", "0xc5eb43d53e2fe5fdde5faf400cc4167e5b5d4fc1")
        ).lower()

    @property
    def default_chain_id(self) -> int:
        return int(self.backend.get("default_chain_id", 100))

    @property
    def response_ttl_sec(self) -> int:
        return int(self.cache.get("response_ttl_sec", 30))

    @property
    def registry_ttl_sec(self) -> int:
        return int(self.cache.get("registry_ttl_sec", 300))

    @property
    def candles_ttl_sec(self) -> int:
        return int(self.cache.get("candles_ttl_sec", 30))

    @property
    def spot_ttl_sec(self) -> int:
        return int(self.cache.get("spot_ttl_sec", 30))

    @property
    def rate_ttl_sec(self) -> int:
        return int(self.cache.get("rate_ttl_sec", 300))

    @property
    def warmer_enabled(self) -> bool:
        return _as_bool(self.warmer.get("enabled"), True)

    @property
    def warmer_retention_days(self) -> int:
        return int(self.warmer.get("retention_days", 7))

    @property
    def warmer_max_entries(self) -> int:
        return int(self.warmer.get("max_entries", 50))

    @property
    def warmer_interval_sec(self) -> int:
        """Refresh a few seconds before the response cache expires, never faster than the floor."""
        margin = int(self.warmer.get("safety_margin_sec", 3))
        floor = int(self.warmer.get("min_interval_sec", 5))
        return max(self.response_ttl_sec - margin, floor)

    @property
    def gecko_api_base(self) -> str:
        return self.spot.get("gecko_api_base", "https://api.geckoterminal.com/api/v2").rstrip("/")

    @property
    def spot_default_limit(self) -> int:
        return int(self.spot.get("default_limit", 500))

    @property
    def gecko_requests_per_minute(self) -> float:
        return float(self.spot.get("requests_per_minute", 30))

    @property
    def http_timeout_sec(self) -> float:
        return float(self.http.get("timeout_sec", 30.0))

    @property
    def logging_level(self) -> str:
        return self.logging.get("level", "INFO").upper()

    @property
    def logging_format(self) -> str:
        return self.logging.get("format", "console")

    @property
    def logging_level_num(self) -> int:
        return getattr(logging, self.logging_level, logging.INFO)


def configure_logging(settings: Settings) -> None:
    """Configure structlog with settings. Call once at application entry."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.logging_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(settings.logging_level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
