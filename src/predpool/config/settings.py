"""TOML config loading and profiles."""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

# Default config search path (project root or cwd)
_CONFIG_DIR = Path(__file__).resolve().parent.parent.parent.parent / "config"
_CWD_CONFIG = Path.cwd() / "config"


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


def _find_config_dir(config_dir: Path | None = None) -> Path:
    if config_dir is not None:
        return config_dir
    if _CWD_CONFIG.exists():
        return _CWD_CONFIG
    return _CONFIG_DIR


def load_config(profile: str | None = None, config_dir: Path | None = None) -> dict[str, Any]:
    """Load merged config from default.toml and optional profile overlay."""
    root = _find_config_dir(config_dir)
    default_path = root / "default.toml"
    if not default_path.exists():
        return {}
    base = _load_toml(default_path)
    if profile:
        profile_path = root / f"{profile}.toml"
        if profile_path.exists():
            overlay = _load_toml(profile_path)
            base = _deep_merge(base, overlay)
    return base


def get_settings(profile: str | None = None, config_dir: Path | None = None) -> Settings:
    """Return Settings instance from merged config."""
    raw = load_config(profile, config_dir)
    return Settings.from_dict(raw)


class Settings:
    """Application settings from TOML config."""

    def __init__(
        self,
        *,
        api: dict[str, Any] | None = None,
        sync: dict[str, Any] | None = None,
        odds: dict[str, Any] | None = None,
        betting: dict[str, Any] | None = None,
        gossip: dict[str, Any] | None = None,
        logging: dict[str, Any] | None = None,
    ):
        self.api = api or {}
        self.sync = sync or {}
        self.odds = odds or {}
        self.betting = betting or {}
        self.gossip = gossip or {}
        self.logging = logging or {}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Settings:
        return cls(
            api=raw.get("api"),
            sync=raw.get("sync"),
            odds=raw.get("odds"),
            betting=raw.get("betting"),
            gossip=raw.get("gossip"),
            logging=raw.get("logging"),
        )

    # Convenience accessors with defaults
    @property
    def api_base_url(self) -> str:
        return self.api.get("base_url", "https://www.tyches.app/api/")

    @property
    def api_timeout_sec(self) -> float:
        return float(self.api.get("timeout_sec", 15.0))

    @property
    def session_cookie(self) -> str | None:
        return self.api.get("session_cookie") or None

    @property
    def refresh_interval_sec(self) -> float:
        return float(self.sync.get("refresh_interval_sec", 5.0))

    @property
    def coalesce_window_sec(self) -> float:
        return float(self.sync.get("coalesce_window_sec", 3.0))

    @property
    def delta_ttl_sec(self) -> float:
        return float(self.sync.get("delta_ttl_sec", 2.5))

    @property
    def swing_threshold(self) -> int:
        return int(self.sync.get("swing_threshold", 5))

    @property
    def closing_soon_minutes(self) -> int:
        return int(self.sync.get("closing_soon_minutes", 15))

    @property
    def low_liquidity_floor(self) -> float:
        return float(self.odds.get("low_liquidity_floor", 100.0))

    @property
    def low_liquidity_ratio(self) -> float:
        return float(self.odds.get("low_liquidity_ratio", 0.1))

    @property
    def min_stake(self) -> float:
        return float(self.betting.get("min_stake", 1.0))

    @property
    def gossip_max_length(self) -> int:
        return int(self.gossip.get("max_length", 1000))

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
    import structlog

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
