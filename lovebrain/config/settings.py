"""
Application settings and environment configuration.

Environment:
- DATABASE_URL: SQLAlchemy URL of the population store (e.g. postgresql://...).
- DATABASE_PATH: SQLite file used when DATABASE_URL is unset.
  With neither set the service runs without a store (estimated rankings only).
- TOTAL_SIMULATIONS: reference population size, the percentile denominator.
  Must match the row count of the population table; re-seed when it changes.
- QUERY_TIMEOUT_SEC: deadline shared by the per-dimension count queries.
- QUERY_WORKERS: size of the thread pool shared by all ranking calls.
- ACCESS_CODE: shared secret checked by POST /api/check-access-code.
- FALLBACK_BUCKETS, FALLBACK_TOP_PERCENTILE, FALLBACK_JITTER: estimator tuning.
- API_HOST, API_PORT, APP_ENV.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from lovebrain.config.env import env_float, env_int, env_str, load_lovebrain_env
from lovebrain.core.constants import (
    DEFAULT_FALLBACK_BUCKETS,
    DEFAULT_FALLBACK_JITTER,
    DEFAULT_FALLBACK_TOP_PERCENTILE,
    DEFAULT_QUERY_TIMEOUT_SEC,
    DEFAULT_QUERY_WORKERS,
    DEFAULT_TOTAL_SIMULATIONS,
    MIN_QUERY_TIMEOUT_SEC,
)
from lovebrain.lovebrain_logging import get_logger

logger = get_logger(__name__)

DEFAULT_API_HOST = "0.0.0.0"
DEFAULT_API_PORT = 3000


def parse_fallback_buckets(raw: str) -> tuple[tuple[float, int], ...]:
    """
    Parse "1.5:15,2.5:35" into ((1.5, 15), (2.5, 35)), sorted by threshold.

    Raises ValueError on malformed entries.
    """
    buckets: list[tuple[float, int]] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        threshold, sep, percentile = part.partition(":")
        if not sep:
            raise ValueError(f"Bucket must be 'threshold:percentile', got {part!r}")
        buckets.append((float(threshold), int(percentile)))
    if not buckets:
        raise ValueError("At least one fallback bucket is required")
    return tuple(sorted(buckets))


@dataclass
class Settings:
    """
    Service settings. Build with get_settings(); construct directly in tests.

    database_url: None means no population store (fallback rankings only).
    """

    database_url: str | None = None
    total_simulations: int = DEFAULT_TOTAL_SIMULATIONS
    query_timeout_sec: float = DEFAULT_QUERY_TIMEOUT_SEC
    query_workers: int = DEFAULT_QUERY_WORKERS
    access_code: str | None = None
    fallback_buckets: tuple[tuple[float, int], ...] = DEFAULT_FALLBACK_BUCKETS
    fallback_top_percentile: int = DEFAULT_FALLBACK_TOP_PERCENTILE
    fallback_jitter: int = DEFAULT_FALLBACK_JITTER
    api_host: str = DEFAULT_API_HOST
    api_port: int = DEFAULT_API_PORT
    environment: str = "development"

    def __post_init__(self) -> None:
        self.total_simulations = max(1, int(self.total_simulations))
        timeout = float(self.query_timeout_sec)
        if not math.isfinite(timeout):
            timeout = DEFAULT_QUERY_TIMEOUT_SEC
        self.query_timeout_sec = max(MIN_QUERY_TIMEOUT_SEC, timeout)
        self.query_workers = max(1, int(self.query_workers))
        self.fallback_jitter = max(0, int(self.fallback_jitter))


def _database_url_from_env() -> str | None:
    url = env_str("DATABASE_URL")
    if url:
        return url
    path = env_str("DATABASE_PATH")
    if path:
        return f"sqlite:///{path}"
    return None


def _fallback_buckets_from_env() -> tuple[tuple[float, int], ...]:
    raw = env_str("FALLBACK_BUCKETS")
    if raw is None:
        return DEFAULT_FALLBACK_BUCKETS
    try:
        return parse_fallback_buckets(raw)
    except ValueError as e:
        logger.warning("config_invalid_fallback_buckets", value=raw, error=str(e))
        return DEFAULT_FALLBACK_BUCKETS


def get_settings() -> Settings:
    """Return settings built from the current environment (re-read on every call)."""
    load_lovebrain_env()
    return Settings(
        database_url=_database_url_from_env(),
        total_simulations=env_int("TOTAL_SIMULATIONS", DEFAULT_TOTAL_SIMULATIONS),
        query_timeout_sec=env_float("QUERY_TIMEOUT_SEC", DEFAULT_QUERY_TIMEOUT_SEC),
        query_workers=env_int("QUERY_WORKERS", DEFAULT_QUERY_WORKERS),
        access_code=env_str("ACCESS_CODE"),
        fallback_buckets=_fallback_buckets_from_env(),
        fallback_top_percentile=env_int("FALLBACK_TOP_PERCENTILE", DEFAULT_FALLBACK_TOP_PERCENTILE),
        fallback_jitter=env_int("FALLBACK_JITTER", DEFAULT_FALLBACK_JITTER),
        api_host=env_str("API_HOST", DEFAULT_API_HOST) or DEFAULT_API_HOST,
        api_port=env_int("API_PORT", DEFAULT_API_PORT),
        environment=env_str("APP_ENV", "development") or "development",
    )
