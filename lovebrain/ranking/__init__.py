"""
Ranking package — percentile ranks for the five quiz dimensions.

Live ranks come from strict-less-than counts against the population store;
when the store is absent or any query fails, the whole result is estimated
by the fallback policy instead.
"""

from lovebrain.ranking.engine import (
    RankingConfig,
    clamp_percentile,
    percentile_from_count,
    rank,
)
from lovebrain.ranking.fallback import FallbackPolicy
from lovebrain.ranking.models import RankResult
from lovebrain.ranking.validation import validate_scores

__all__ = [
    "FallbackPolicy",
    "RankResult",
    "RankingConfig",
    "clamp_percentile",
    "percentile_from_count",
    "rank",
    "validate_scores",
]
