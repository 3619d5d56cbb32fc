"""
Runtime configuration.

Settings are read once from the environment (and a local .env file) and then
passed by value into each component. Nothing below the HTTP layer reads the
environment on its own.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv, find_dotenv

DEFAULT_RSS_URL = "https://anchor.fm/s/your-default-rss-id/podcast/rss"


class SettingsError(ValueError):
    """Malformed configuration value."""

    def __init__(self, name: str, value: str, expected: str):
        super().__init__(f"{name}={value!r} is invalid: expected {expected}")
        self.name = name


def parse_allowlist(raw: str) -> frozenset:
    """
    Parse a comma-separated domain allowlist.

    Examples:
        "example.com, Feeds.Example.org" -> {"example.com", "feeds.example.org"}
        "" -> empty set (no allowlist)
    """
    return frozenset(
        part.strip().lower().strip(".")
        for part in (raw or "").split(",")
        if part.strip().strip(".")
    )


def _get_int(env: Mapping[str, str], name: str, default: int, minimum: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        raise SettingsError(name, raw, "an integer")
    if value < minimum:
        raise SettingsError(name, raw, f"an integer >= {minimum}")
    return value


def _get_float(env: Mapping[str, str], name: str, default: float, minimum: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw.strip())
    except ValueError:
        raise SettingsError(name, raw, "a number")
    if value < minimum:
        raise SettingsError(name, raw, f"a number >= {minimum}")
    return value


@dataclass(frozen=True)
class Settings:
    """Service configuration (see .env.example for the variable names)."""

    default_rss_url: str = DEFAULT_RSS_URL
    allow_query_rss: bool = True
    domain_allowlist: frozenset = field(default_factory=frozenset)
    episode_limit: int = 100
    cache_ttl_ms: int = 5 * 60 * 1000
    cache_max_entries: int = 256
    cache_max_stale_ms: int = 60 * 60 * 1000
    cache_sweep_interval_seconds: float = 60.0
    fetch_timeout_seconds: float = 15.0
    page_description_chars: int = 340
    api_description_chars: int = 1000
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            env: Mapping to read from. Defaults to os.environ after loading .env.

        Raises:
            SettingsError: When a numeric value is malformed or out of range
        """
        if env is None:
            _ = load_dotenv(find_dotenv())
            env = os.environ

        return cls(
            default_rss_url=(env.get("RSS_URL") or DEFAULT_RSS_URL).strip(),
            # Anything other than "1" turns caller-supplied feeds off
            allow_query_rss=str(env.get("ALLOW_QUERY_RSS", "1")).strip() == "1",
            domain_allowlist=parse_allowlist(env.get("RSS_DOMAIN_ALLOWLIST", "")),
            episode_limit=_get_int(env, "EP_LIMIT", 100, minimum=1),
            cache_ttl_ms=_get_int(env, "CACHE_TTL_MS", 5 * 60 * 1000, minimum=0),
            cache_max_entries=_get_int(env, "CACHE_MAX_ENTRIES", 256, minimum=1),
            cache_max_stale_ms=_get_int(env, "CACHE_MAX_STALE_MS", 60 * 60 * 1000, minimum=0),
            cache_sweep_interval_seconds=_get_float(
                env, "CACHE_SWEEP_INTERVAL_SECONDS", 60.0, minimum=0
            ),
            fetch_timeout_seconds=_get_float(env, "FETCH_TIMEOUT_SECONDS", 15.0, minimum=0.1),
            page_description_chars=_get_int(env, "PAGE_DESCRIPTION_CHARS", 340, minimum=1),
            api_description_chars=_get_int(env, "API_DESCRIPTION_CHARS", 1000, minimum=1),
            host=(env.get("HOST") or "0.0.0.0").strip(),
            port=_get_int(env, "PORT", 3000, minimum=1),
            log_level=(env.get("LOG_LEVEL") or "INFO").strip().upper(),
            log_dir=(env.get("LOG_DIR") or "").strip() or None,
        )
