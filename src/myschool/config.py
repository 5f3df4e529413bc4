"""Application configuration defaults."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_BASE_URL = "https://open.neis.go.kr/hub"


@dataclass(frozen=True, slots=True)
class Region:
    """Education office that shards the directory fetch."""

    code: str
    name: str


REGIONS: tuple[Region, ...] = (
    Region("B10", "서울"),
    Region("C10", "부산"),
    Region("D10", "대구"),
    Region("E10", "인천"),
    Region("F10", "광주"),
    Region("G10", "대전"),
    Region("H10", "울산"),
    Region("I10", "세종"),
    Region("J10", "경기"),
    Region("K10", "강원"),
    Region("M10", "충북"),
    Region("N10", "충남"),
    Region("P10", "전북"),
    Region("Q10", "전남"),
    Region("R10", "경북"),
    Region("S10", "경남"),
    Region("T10", "제주"),
    Region("V10", "재외"),
)


LOG_FORMAT = "[%(levelname)s] %(message)s"

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def parse_log_level(name: str) -> int:
    """Map a LOG_LEVEL value to a logging level, defaulting to INFO."""
    return _LOG_LEVELS.get(name.strip().lower(), logging.INFO)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(slots=True)
class AppConfig:
    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "info"
    cache_ttl: float = 3600.0
    sweep_interval: float = 300.0
    refresh_interval: float = 86400.0
    request_timeout: float = 10.0
    page_size: int = 1000
    fallback_page_size: int = 100
    max_results: int = 100
    regions: tuple[Region, ...] = field(default=REGIONS)

    @classmethod
    def from_env(cls, env_file: Path | None = None) -> "AppConfig":
        """Build a config from the process environment.

        Values from ``env_file`` (``.env`` in the working directory by default)
        are loaded first but never override variables already set.
        """
        load_dotenv(env_file if env_file is not None else Path.cwd() / ".env", override=False)
        defaults = cls()
        return cls(
            api_key=os.environ.get("NEIS_API_KEY", "").strip(),
            base_url=os.environ.get("NEIS_BASE_URL", defaults.base_url).rstrip("/"),
            host=os.environ.get("HOST", defaults.host),
            port=_env_int("PORT", defaults.port),
            log_level=os.environ.get("LOG_LEVEL", defaults.log_level).strip().lower() or "info",
            cache_ttl=float(_env_int("CACHE_TTL", int(defaults.cache_ttl))),
            refresh_interval=float(_env_int("REFRESH_INTERVAL", int(defaults.refresh_interval))),
        )
