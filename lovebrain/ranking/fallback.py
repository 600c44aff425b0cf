"""
Fallback estimator used when the population store cannot be queried.

Base percentile by a fixed step function over score buckets, plus uniform
integer jitter in [-jitter, +jitter], clamped to [1, 99]:

    score <= 1.5 -> 15, <= 2.5 -> 35, <= 3.5 -> 55, <= 4.5 -> 75, else 90

The thresholds suit a 0-5 scale while real dimension scores are 0-32 sums, so
most real inputs land in the top bucket. Buckets are configurable rather than
rescaled here.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any

from lovebrain.core.constants import (
    DEFAULT_FALLBACK_BUCKETS,
    DEFAULT_FALLBACK_JITTER,
    DEFAULT_FALLBACK_TOP_PERCENTILE,
    PERCENTILE_MAX,
    PERCENTILE_MIN,
)


def clamp_percentile(value: int) -> int:
    """Clamp to [1, 99]; 0th and 100th percentiles are never reported."""
    return max(PERCENTILE_MIN, min(PERCENTILE_MAX, int(value)))


@dataclass
class FallbackPolicy:
    """
    Bucket thresholds (upper bound inclusive, base percentile), top-bucket base, jitter span.

    rng is a per-process pseudo-random generator; pass a seeded random.Random for
    reproducible output.
    """

    buckets: tuple[tuple[float, int], ...] = DEFAULT_FALLBACK_BUCKETS
    top_percentile: int = DEFAULT_FALLBACK_TOP_PERCENTILE
    jitter: int = DEFAULT_FALLBACK_JITTER
    rng: random.Random = field(default_factory=random.Random, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.buckets = tuple(sorted((float(t), int(p)) for t, p in self.buckets))
        self.top_percentile = int(self.top_percentile)
        self.jitter = max(0, int(self.jitter))

    @classmethod
    def from_settings(cls, settings: Any, rng: random.Random | None = None) -> FallbackPolicy:
        kwargs: dict[str, Any] = {
            "buckets": settings.fallback_buckets,
            "top_percentile": settings.fallback_top_percentile,
            "jitter": settings.fallback_jitter,
        }
        if rng is not None:
            kwargs["rng"] = rng
        return cls(**kwargs)

    def base_percentile(self, score: float) -> int:
        """Deterministic bucket base for a score, before jitter."""
        for threshold, percentile in self.buckets:
            if score <= threshold:
                return percentile
        return self.top_percentile

    def estimate(self, score: float) -> int:
        variation = self.rng.randint(-self.jitter, self.jitter)
        return clamp_percentile(self.base_percentile(score) + variation)

    def estimate_all(self, values: dict[str, float]) -> dict[str, int]:
        return {dim: self.estimate(score) for dim, score in values.items()}
