"""
Ranking result model.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from lovebrain.core.constants import SOURCE_MOCK


@dataclass(frozen=True)
class RankResult:
    """
    Percentile per dimension (int in [1, 99], canonical order) and where it came from.

    source is "database" when every rank came from the population store,
    "mock" when every rank came from the fallback estimator. Never mixed.
    """

    rankings: dict[str, int]
    source: str

    @property
    def is_estimated(self) -> bool:
        return self.source == SOURCE_MOCK

    def to_dict(self) -> dict[str, Any]:
        return {"rankings": dict(self.rankings), "source": self.source}
