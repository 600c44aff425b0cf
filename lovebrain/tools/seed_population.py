"""
Seed the reference population with simulated assessments.

Each simulated assessment answers 40 questions (8 per dimension, canonical
dimension order) with a uniform 0-4 score. Reverse-scored questions store 4 - x.
A dimension score is the sum of its 8 answers (0-32). The table is wiped first,
so after a run the row count equals --count; keep it equal to TOTAL_SIMULATIONS.

Env: DATABASE_URL or DATABASE_PATH, TOTAL_SIMULATIONS.

Usage:
  lovebrain-seed [--count N] [--seed S] [--database-url URL]
  python -m lovebrain.tools.seed_population
"""

from __future__ import annotations

import argparse
import random
import sys
from typing import Iterator

from lovebrain.config import get_settings
from lovebrain.core.constants import (
    DIMENSIONS,
    MAX_SCORE_PER_QUESTION,
    QUESTIONS_PER_DIMENSION,
    REVERSE_SCORED_INDICES,
)
from lovebrain.core.exceptions import StoreUnavailable
from lovebrain.database import PopulationRecord, SQLPopulationStore
from lovebrain.lovebrain_logging import get_logger

logger = get_logger(__name__)


def generate_record(rng: random.Random) -> PopulationRecord:
    """One simulated assessment: 40 random answers summed into five dimension scores."""
    totals = {dim: 0 for dim in DIMENSIONS}
    for i in range(len(DIMENSIONS) * QUESTIONS_PER_DIMENSION):
        score = rng.randint(0, MAX_SCORE_PER_QUESTION)
        if i in REVERSE_SCORED_INDICES:
            score = MAX_SCORE_PER_QUESTION - score
        totals[DIMENSIONS[i // QUESTIONS_PER_DIMENSION]] += score
    return PopulationRecord.from_scores(totals)


def generate_population(count: int, rng: random.Random) -> Iterator[PopulationRecord]:
    for _ in range(count):
        yield generate_record(rng)


def seed_population(store: SQLPopulationStore, count: int, seed: int | None = None) -> int:
    """Replace the population with `count` simulated records. Returns rows inserted."""
    rng = random.Random(seed)
    store.ensure_schema()
    inserted = store.replace_records(generate_population(count, rng))
    logger.info("population_seeded", count=inserted, seed=seed)
    return inserted


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed the lovebrain reference population.")
    parser.add_argument("--count", type=int, default=None, help="Records to generate (default: TOTAL_SIMULATIONS)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for a reproducible population")
    parser.add_argument("--database-url", default=None, help="SQLAlchemy URL (default: DATABASE_URL / DATABASE_PATH)")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    url = args.database_url or settings.database_url
    if not url:
        logger.error("seed_config_error", message="DATABASE_URL or DATABASE_PATH is not set")
        return 1
    count = args.count if args.count is not None else settings.total_simulations
    if count < 1:
        logger.error("seed_config_error", message="--count must be at least 1", count=count)
        return 1
    if count != settings.total_simulations:
        logger.warning(
            "seed_count_differs_from_total_simulations",
            count=count,
            total_simulations=settings.total_simulations,
        )

    store: SQLPopulationStore | None = None
    try:
        store = SQLPopulationStore(url)
        seed_population(store, count, seed=args.seed)
    except StoreUnavailable as e:
        logger.error("seed_failed", error=str(e))
        return 1
    except Exception as e:
        logger.exception("seed_failed", error=str(e))
        return 1
    finally:
        if store is not None:
            store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
