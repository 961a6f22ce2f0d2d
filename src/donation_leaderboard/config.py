import copy
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from donation_leaderboard.schemas import LeaderboardSettings


DEFAULT_CONFIG: dict[str, Any] = {
    "server": {
        "host": "0.0.0.0",
        "port": 8200,
    },
    "mysql": {
        "host": "localhost",
        "port": 3306,
        "user": "donations",
        "password": "",
        "database": "donations",
        "charset": "utf8mb4",
    },
    "leaderboard": {
        "max_orders": 1000,
        "cache_ttl_seconds": 6 * 60 * 60,
        "refresh_window_seconds": 90,
        "accent_color": "#30bf76",
        "locale": "en_US",
        "timezone": "UTC",
        "date_format": "medium",
        "time_format": "short",
        "icon_url": "/static/donation.svg",
    },
    "logging": {
        "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        "log_file": "leaderboard.log",
    },
}

_ENV_PREFIX = "DONATION_LEADERBOARD_"


def _deep_merge(base: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    for key, value in incoming.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _config_path() -> Path:
    value = os.environ.get(f"{_ENV_PREFIX}CONFIG_FILE")
    if value:
        return Path(value)
    return Path(__file__).resolve().parents[2] / "config.yaml"


def _env(name: str) -> str | None:
    return os.environ.get(f"{_ENV_PREFIX}{name}") or None


def _apply_env_overrides(config: dict[str, Any]) -> None:
    if _env("HOST"):
        config["server"]["host"] = _env("HOST")
    if _env("PORT"):
        config["server"]["port"] = int(_env("PORT"))

    if _env("MYSQL_HOST"):
        config["mysql"]["host"] = _env("MYSQL_HOST")
    if _env("MYSQL_PORT"):
        config["mysql"]["port"] = int(_env("MYSQL_PORT"))
    if _env("MYSQL_USER"):
        config["mysql"]["user"] = _env("MYSQL_USER")
    if _env("MYSQL_PASSWORD"):
        config["mysql"]["password"] = _env("MYSQL_PASSWORD")
    if _env("MYSQL_DATABASE"):
        config["mysql"]["database"] = _env("MYSQL_DATABASE")

    if _env("MAX_ORDERS"):
        config["leaderboard"]["max_orders"] = int(_env("MAX_ORDERS"))
    if _env("CACHE_TTL_SECONDS"):
        config["leaderboard"]["cache_ttl_seconds"] = int(_env("CACHE_TTL_SECONDS"))
    if _env("ACCENT_COLOR"):
        config["leaderboard"]["accent_color"] = _env("ACCENT_COLOR")
    if _env("LOCALE"):
        config["leaderboard"]["locale"] = _env("LOCALE")
    if _env("TIMEZONE"):
        config["leaderboard"]["timezone"] = _env("TIMEZONE")

    if _env("LOG_FILE"):
        config["logging"]["log_file"] = _env("LOG_FILE")


@lru_cache(maxsize=1)
def load_config() -> dict[str, Any]:
    config = copy.deepcopy(DEFAULT_CONFIG)
    path = _config_path()

    if path.exists():
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Invalid YAML root in {path}: expected mapping")
        _deep_merge(config, data)

    _apply_env_overrides(config)
    return config


def reload_config() -> dict[str, Any]:
    load_config.cache_clear()
    return load_config()


def leaderboard_settings(config: dict[str, Any] | None = None) -> LeaderboardSettings:
    """Build the settings object shared by the loader and the renderer."""
    section = (config or load_config())["leaderboard"]
    return LeaderboardSettings(**section)
