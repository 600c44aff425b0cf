"""
Ranking engine: convert a user's raw dimension scores into percentile ranks.

Live path (store reachable), per dimension D independently:
    count = store.count_below(D, score[D])          # strict less-than
    percentile = clamp(round(100 * count / TOTAL_SIMULATIONS), 1, 99)

The five counts are fanned out on a thread pool under one shared deadline and
merged by dimension key, so completion order never matters.

Fallback path: when the store is unavailable, or any single query raises or
times out, all live results are discarded and every dimension is estimated by
FallbackPolicy. A result is either entirely "database" or entirely "mock".

Store failures are logged and absorbed. Only ValidationError reaches the caller.
"""

from __future__ import annotations

import math
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from typing import Any

from lovebrain.core.constants import (
    DEFAULT_QUERY_TIMEOUT_SEC,
    DEFAULT_QUERY_WORKERS,
    DEFAULT_TOTAL_SIMULATIONS,
    DIMENSIONS,
    MIN_QUERY_TIMEOUT_SEC,
    SOURCE_DATABASE,
    SOURCE_MOCK,
)
from lovebrain.core.exceptions import StoreQueryFailure
from lovebrain.database.population import PopulationStore, UnavailableStore
from lovebrain.lovebrain_logging import get_logger
from lovebrain.ranking.fallback import FallbackPolicy, clamp_percentile
from lovebrain.ranking.models import RankResult
from lovebrain.ranking.validation import validate_scores

logger = get_logger(__name__)


@dataclass
class RankingConfig:
    """
    total_simulations: percentile denominator; must match the population row count
        (not checked here, see the /api/status endpoint).
    query_timeout_sec: deadline for all five count queries together.
    query_workers: size of the thread pool shared by every rank() call using this config.
    fallback: estimator used when the live path cannot complete.

    The pool is created on first use and released by close().
    """

    total_simulations: int = DEFAULT_TOTAL_SIMULATIONS
    query_timeout_sec: float = DEFAULT_QUERY_TIMEOUT_SEC
    query_workers: int = DEFAULT_QUERY_WORKERS
    fallback: FallbackPolicy = field(default_factory=FallbackPolicy)
    _executor: ThreadPoolExecutor | None = field(default=None, init=False, repr=False, compare=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.total_simulations = max(1, int(self.total_simulations))
        timeout = float(self.query_timeout_sec)
        if not math.isfinite(timeout):
            timeout = DEFAULT_QUERY_TIMEOUT_SEC
        self.query_timeout_sec = max(MIN_QUERY_TIMEOUT_SEC, timeout)
        self.query_workers = max(1, int(self.query_workers))

    @classmethod
    def from_settings(cls, settings: Any) -> RankingConfig:
        return cls(
            total_simulations=settings.total_simulations,
            query_timeout_sec=settings.query_timeout_sec,
            query_workers=settings.query_workers,
            fallback=FallbackPolicy.from_settings(settings),
        )

    @property
    def executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.query_workers,
                    thread_name_prefix="rank-query",
                )
            return self._executor

    def close(self) -> None:
        """Shut the query pool down without waiting for stalled queries."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)


def percentile_from_count(count: int, total: int) -> int:
    """round(100 * count / total) with halves rounded up, clamped to [1, 99]."""
    raw = math.floor(100 * count / total + 0.5)
    return clamp_percentile(raw)


def _live_rankings(
    values: dict[str, float],
    store: PopulationStore,
    config: RankingConfig,
) -> dict[str, int]:
    """
    Query all dimensions concurrently. Raises on the first failure or on timeout;
    the caller discards everything in that case.
    """
    executor = config.executor
    futures = {
        dim: executor.submit(store.count_below, dim, values[dim])
        for dim in DIMENSIONS
    }
    deadline = time.monotonic() + config.query_timeout_sec
    try:
        rankings: dict[str, int] = {}
        for dim in DIMENSIONS:
            remaining = max(0.0, deadline - time.monotonic())
            try:
                count = futures[dim].result(timeout=remaining)
            except FuturesTimeoutError as e:
                raise StoreQueryFailure(
                    f"Count query for {dim} exceeded {config.query_timeout_sec}s",
                    dimension=dim,
                ) from e
            rankings[dim] = percentile_from_count(count, config.total_simulations)
        return rankings
    finally:
        # Queued queries are dropped; a running one keeps its worker until the store gives up.
        for future in futures.values():
            future.cancel()


def _mock_result(values: dict[str, float], config: RankingConfig) -> RankResult:
    return RankResult(rankings=config.fallback.estimate_all(values), source=SOURCE_MOCK)


_default_config = RankingConfig()


def rank(
    scores: Any,
    store: PopulationStore | None,
    config: RankingConfig | None = None,
) -> RankResult:
    """
    Rank a ScoreVector against the population.

    Args:
        scores: mapping with the five dimension keys, numeric values.
        store: live store, UnavailableStore, or None (treated as unavailable).
        config: defaults to a process-wide RankingConfig() (1000 records, 2s timeout,
            default buckets).

    Returns:
        RankResult with all five dimensions; source "database" or "mock".

    Raises:
        ValidationError: missing or non-numeric dimension.
    """
    values = validate_scores(scores)
    config = config or _default_config
    if store is None:
        store = UnavailableStore()

    if not store.available:
        result = _mock_result(values, config)
        logger.info("ranking_estimated", reason="store_unavailable", rankings=result.rankings)
        return result

    try:
        rankings = _live_rankings(values, store, config)
    except Exception as e:
        logger.warning(
            "ranking_store_failed",
            error=str(e),
            error_type=type(e).__name__,
            dimension=getattr(e, "dimension", None),
        )
        result = _mock_result(values, config)
        logger.info("ranking_estimated", reason="store_query_failed", rankings=result.rankings)
        return result

    logger.info("ranking_computed", source=SOURCE_DATABASE, rankings=rankings)
    return RankResult(rankings=rankings, source=SOURCE_DATABASE)
