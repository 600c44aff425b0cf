"""
Score input validation.

A ScoreVector must carry all five dimensions as finite real numbers.
Booleans are rejected even though bool subclasses int. Extra keys are ignored.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from lovebrain.core.constants import DIMENSIONS
from lovebrain.core.exceptions import ValidationError


def validate_scores(scores: Any) -> dict[str, float]:
    """
    Return {dimension: float} in canonical order.

    Raises ValidationError naming the first offending dimension.
    """
    if not isinstance(scores, Mapping):
        raise ValidationError("Malformed request: score object is missing")
    values: dict[str, float] = {}
    for dim in DIMENSIONS:
        value = scores.get(dim)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"Malformed request: score for dimension {dim} must be a number", dimension=dim)
        try:
            number = float(value)
        except OverflowError:
            number = math.inf
        if not math.isfinite(number):
            raise ValidationError(f"Malformed request: score for dimension {dim} must be finite", dimension=dim)
        values[dim] = number
    return values
