"""
Shared constants: quiz dimensions and population defaults.
"""

from __future__ import annotations

# Canonical order; rankings are always serialized in this order.
DIMENSIONS: tuple[str, ...] = (
    "emotional_dependence",
    "idealization_filter",
    "boundary_sacrifice",
    "loss_of_self",
    "relationship_centrality",
)

QUESTIONS_PER_DIMENSION = 8
MAX_SCORE_PER_QUESTION = 4

# 0-based indices over the 40 questions whose answers are reversed (4 - x)
REVERSE_SCORED_INDICES = frozenset({13, 14, 22, 23, 36, 37, 39})

DEFAULT_TOTAL_SIMULATIONS = 1000

PERCENTILE_MIN = 1
PERCENTILE_MAX = 99

SOURCE_DATABASE = "database"
SOURCE_MOCK = "mock"

# Fallback estimator: (upper bound inclusive, base percentile) per bucket.
# Thresholds look calibrated for a 0-5 scale while dimension scores are 0-32 sums.
DEFAULT_FALLBACK_BUCKETS: tuple[tuple[float, int], ...] = (
    (1.5, 15),
    (2.5, 35),
    (3.5, 55),
    (4.5, 75),
)
DEFAULT_FALLBACK_TOP_PERCENTILE = 90
DEFAULT_FALLBACK_JITTER = 8

DEFAULT_QUERY_TIMEOUT_SEC = 2.0
MIN_QUERY_TIMEOUT_SEC = 0.05

# Worker threads shared by all ranking calls; a stalled database holds at most this many.
DEFAULT_QUERY_WORKERS = 4 * len(DIMENSIONS)
