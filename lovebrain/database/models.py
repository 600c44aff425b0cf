"""
Domain models for database entities.

No ORM coupling here so store implementations stay swappable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from lovebrain.core.constants import DIMENSIONS


@dataclass(frozen=True)
class PopulationRecord:
    """One completed reference assessment: a score per dimension (0-32 sums in practice)."""

    emotional_dependence: float
    idealization_filter: float
    boundary_sacrifice: float
    loss_of_self: float
    relationship_centrality: float

    @classmethod
    def from_scores(cls, scores: dict[str, Any]) -> PopulationRecord:
        return cls(**{dim: float(scores[dim]) for dim in DIMENSIONS})

    def to_dict(self) -> dict[str, float]:
        return {dim: getattr(self, dim) for dim in DIMENSIONS}
