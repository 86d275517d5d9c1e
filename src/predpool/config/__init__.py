"""Configuration: TOML profiles and structlog setup."""

from predpool.config.settings import Settings, configure_logging, get_settings, load_config

__all__ = ["Settings", "configure_logging", "get_settings", "load_config"]
