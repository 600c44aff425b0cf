"""
Pytest tests for the ranking engine (live percentiles, fallback policy, validation).

Live-path tests use a temporary SQLite population; failure paths use FakeStore.
"""

from __future__ import annotations

import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import FakeStore, uniform_record
from lovebrain.core.constants import DIMENSIONS
from lovebrain.core.exceptions import ValidationError
from lovebrain.database import PopulationRecord, UnavailableStore
from lovebrain.ranking import (
    FallbackPolicy,
    RankingConfig,
    percentile_from_count,
    rank,
)
from lovebrain.tools.seed_population import seed_population

ALL_THREES = {dim: 3.0 for dim in DIMENSIONS}

EXAMPLE_SCORES = {
    "emotional_dependence": 1.0,
    "idealization_filter": 3.0,
    "boundary_sacrifice": 4.6,
    "loss_of_self": 2.4,
    "relationship_centrality": 5.0,
}
EXAMPLE_BASES = {
    "emotional_dependence": 15,
    "idealization_filter": 55,
    "boundary_sacrifice": 90,
    "loss_of_self": 35,
    "relationship_centrality": 90,
}


def _assert_within_jitter(rankings, bases, jitter=8):
    for dim, base in bases.items():
        assert max(1, base - jitter) <= rankings[dim] <= min(99, base + jitter), dim


# --- Percentile arithmetic ---


def test_percentile_from_count_rounds_half_up_and_clamps():
    """round(100*count/total) with halves up; 0 -> 1 and 100 -> 99."""
    assert percentile_from_count(0, 1000) == 1
    assert percentile_from_count(5, 1000) == 1  # 0.5 -> 1
    assert percentile_from_count(15, 1000) == 2  # 1.5 -> 2
    assert percentile_from_count(25, 1000) == 3  # 2.5 -> 3, not banker's 2
    assert percentile_from_count(250, 1000) == 25
    assert percentile_from_count(994, 1000) == 99
    assert percentile_from_count(995, 1000) == 99  # 99.5 -> 100 -> 99
    assert percentile_from_count(1000, 1000) == 99


def test_total_simulations_is_the_denominator():
    """Same count against a smaller configured population gives a higher percentile."""
    store = FakeStore(counts={dim: 250 for dim in DIMENSIONS})
    result = rank(ALL_THREES, store, RankingConfig(total_simulations=500))
    assert result.source == "database"
    assert set(result.rankings.values()) == {50}


# --- Live path against SQLite ---


def test_live_rank_counts_strictly_below(population_db):
    """1000 records, 250 below 3.0 on every dimension -> 25 everywhere."""
    records = [uniform_record(1.0)] * 250 + [uniform_record(3.0)] * 750
    population_db.replace_records(records)

    result = rank(ALL_THREES, population_db, RankingConfig(total_simulations=1000))

    assert result.source == "database"
    assert result.rankings["idealization_filter"] == 25
    assert result.rankings == {dim: 25 for dim in DIMENSIONS}
    assert list(result.rankings) == list(DIMENSIONS)


def test_live_rank_all_equal_clamps_to_one(population_db):
    """Every record equals the user's score -> count 0 -> raw 0 -> 1."""
    population_db.replace_records([uniform_record(12.0)] * 1000)
    result = rank({dim: 12.0 for dim in DIMENSIONS}, population_db, RankingConfig(total_simulations=1000))
    assert result.source == "database"
    assert set(result.rankings.values()) == {1}


def test_live_rank_above_everyone_clamps_to_99(population_db):
    """User score above every record -> count == total -> raw 100 -> 99."""
    population_db.replace_records([uniform_record(20.0)] * 1000)
    result = rank({dim: 32.0 for dim in DIMENSIONS}, population_db, RankingConfig(total_simulations=1000))
    assert result.source == "database"
    assert set(result.rankings.values()) == {99}


def test_live_rank_dimensions_are_independent(population_db):
    """Each dimension is counted on its own column."""
    records = []
    for i in range(1000):
        records.append(
            PopulationRecord(
                emotional_dependence=float(i % 10),
                idealization_filter=float(i % 4),
                boundary_sacrifice=0.0,
                loss_of_self=32.0,
                relationship_centrality=float(i % 2),
            )
        )
    population_db.replace_records(records)
    scores = {
        "emotional_dependence": 5.0,  # values 0-4 below -> 500
        "idealization_filter": 3.0,  # values 0-2 below -> 750
        "boundary_sacrifice": 0.0,  # nothing strictly below -> 0
        "loss_of_self": 40.0,  # everything below -> 1000
        "relationship_centrality": 1.0,  # value 0 below -> 500
    }
    result = rank(scores, population_db, RankingConfig(total_simulations=1000))
    assert result.rankings == {
        "emotional_dependence": 50,
        "idealization_filter": 75,
        "boundary_sacrifice": 1,
        "loss_of_self": 99,
        "relationship_centrality": 50,
    }


def test_live_rank_is_deterministic_and_in_range(population_db):
    """Without store mutation, repeated calls are identical; all ranks are ints in [1, 99]."""
    seed_population(population_db, 1000, seed=7)
    config = RankingConfig(total_simulations=1000)
    for value in range(0, 33, 4):
        scores = {dim: float(value) for dim in DIMENSIONS}
        first = rank(scores, population_db, config)
        second = rank(scores, population_db, config)
        assert first == second
        assert first.source == "database"
        for percentile in first.rankings.values():
            assert isinstance(percentile, int)
            assert 1 <= percentile <= 99


def test_live_rank_queries_each_dimension_once():
    store = FakeStore()
    rank(EXAMPLE_SCORES, store)
    assert sorted(store.calls) == sorted((dim, EXAMPLE_SCORES[dim]) for dim in DIMENSIONS)


# --- Fallback path ---


def test_unavailable_store_uses_bucket_bases_with_jitter():
    """Unreachable store: bases {15, 55, 90, 35, 90}, each within +/-8, source mock."""
    result = rank(EXAMPLE_SCORES, UnavailableStore())
    assert result.source == "mock"
    assert result.is_estimated
    assert list(result.rankings) == list(DIMENSIONS)
    _assert_within_jitter(result.rankings, EXAMPLE_BASES)


def test_none_store_is_treated_as_unavailable():
    result = rank(EXAMPLE_SCORES, None)
    assert result.source == "mock"
    _assert_within_jitter(result.rankings, EXAMPLE_BASES)


def test_fallback_without_jitter_returns_exact_bases():
    config = RankingConfig(fallback=FallbackPolicy(jitter=0))
    result = rank(EXAMPLE_SCORES, UnavailableStore(), config)
    assert result.rankings == EXAMPLE_BASES


def test_single_dimension_failure_falls_back_for_all_dimensions():
    """One failing query discards every live percentile; nothing is mixed."""
    store = FakeStore(counts={dim: 990 for dim in DIMENSIONS}, fail_on="boundary_sacrifice")
    config = RankingConfig(fallback=FallbackPolicy(rng=random.Random(0)))

    result = rank(EXAMPLE_SCORES, store, config)

    assert result.source == "mock"
    assert set(result.rankings) == set(DIMENSIONS)
    _assert_within_jitter(result.rankings, EXAMPLE_BASES)


def test_unexpected_store_exception_falls_back():
    class BrokenStore(FakeStore):
        def count_below(self, dimension, value):
            raise RuntimeError("driver exploded")

    result = rank(EXAMPLE_SCORES, BrokenStore())
    assert result.source == "mock"


def test_stalled_query_times_out_to_fallback():
    """A query that never returns is bounded by query_timeout_sec."""
    store = FakeStore(block_on="loss_of_self")
    config = RankingConfig(query_timeout_sec=0.2)
    try:
        started = time.monotonic()
        result = rank(EXAMPLE_SCORES, store, config)
        elapsed = time.monotonic() - started
    finally:
        store.release.set()
        config.close()
    assert result.source == "mock"
    assert elapsed < 2.0
    _assert_within_jitter(result.rankings, EXAMPLE_BASES)


def test_stalled_queries_keep_thread_count_bounded():
    """Repeated timeouts reuse the shared pool instead of leaving a thread behind per call."""
    store = FakeStore(block_on="loss_of_self")
    config = RankingConfig(query_timeout_sec=0.05, query_workers=5)
    before = threading.active_count()
    try:
        for _ in range(20):
            assert rank(EXAMPLE_SCORES, store, config).source == "mock"
        assert threading.active_count() - before <= config.query_workers
    finally:
        store.release.set()
        config.close()


def test_closed_config_reopens_its_pool():
    config = RankingConfig()
    first = rank(ALL_THREES, FakeStore(), config)
    config.close()
    second = rank(ALL_THREES, FakeStore(), config)
    config.close()
    assert first == second
    assert second.source == "database"


def test_non_finite_timeout_uses_default():
    assert RankingConfig(query_timeout_sec=float("inf")).query_timeout_sec == 2.0
    assert RankingConfig(query_timeout_sec=float("nan")).query_timeout_sec == 2.0


def test_concurrent_rank_calls_do_not_interfere(population_db):
    population_db.replace_records(uniform_record(float(v)) for v in range(100))
    config = RankingConfig(total_simulations=100, query_timeout_sec=10.0, query_workers=10)
    requests = [
        {dim: float(10 + 5 * i + j) for j, dim in enumerate(DIMENSIONS)}
        for i in range(12)
    ]
    try:
        with ThreadPoolExecutor(max_workers=6) as pool:
            results = list(pool.map(lambda scores: rank(scores, population_db, config), requests))
    finally:
        config.close()
    for scores, result in zip(requests, results):
        assert result.source == "database"
        assert result.rankings == {dim: int(value) for dim, value in scores.items()}


def test_fallback_calls_differ_only_within_jitter():
    for _ in range(50):
        result = rank(EXAMPLE_SCORES, UnavailableStore())
        _assert_within_jitter(result.rankings, EXAMPLE_BASES)


# --- Validation ---


@pytest.mark.parametrize(
    "bad_value",
    ["3", None, True, float("nan"), float("inf"), 10**400, -(10**400), [1], {"v": 1}],
)
def test_invalid_dimension_value_raises_validation_error(bad_value):
    store = FakeStore()
    scores = dict(EXAMPLE_SCORES, loss_of_self=bad_value)
    with pytest.raises(ValidationError) as excinfo:
        rank(scores, store)
    assert excinfo.value.dimension == "loss_of_self"
    assert store.calls == []


def test_missing_dimension_raises_validation_error():
    scores = dict(EXAMPLE_SCORES)
    del scores["relationship_centrality"]
    with pytest.raises(ValidationError, match="relationship_centrality"):
        rank(scores, UnavailableStore())


def test_non_mapping_scores_raise_validation_error():
    with pytest.raises(ValidationError):
        rank([1, 2, 3, 4, 5], UnavailableStore())
    with pytest.raises(ValidationError):
        rank(None, None)


def test_extra_keys_and_integer_scores_are_accepted():
    scores = {dim: 3 for dim in DIMENSIONS}
    scores["comment"] = "ignored"
    result = rank(scores, FakeStore(counts={dim: 100 for dim in DIMENSIONS}))
    assert result.source == "database"
    assert set(result.rankings) == set(DIMENSIONS)
    assert set(result.rankings.values()) == {10}


def test_rank_result_to_dict():
    result = rank(ALL_THREES, FakeStore(counts={dim: 420 for dim in DIMENSIONS}))
    assert result.to_dict() == {
        "rankings": {dim: 42 for dim in DIMENSIONS},
        "source": "database",
    }
