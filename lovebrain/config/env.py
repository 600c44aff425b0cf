"""
Environment variable loading and typed accessors.

- Loads .env from the project root when present.
- env_int / env_float fall back to the default (with a warning) on unparsable values;
  env_float also rejects nan and infinity.
"""

from __future__ import annotations

import math
import os
from pathlib import Path

from dotenv import load_dotenv

from lovebrain.lovebrain_logging import get_logger

logger = get_logger(__name__)

# Project root: config is lovebrain/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"


def load_lovebrain_env() -> None:
    """Load .env from project root. Existing environment variables win."""
    load_dotenv(_ENV_PATH)


def env_str(name: str, default: str | None = None) -> str | None:
    """Return stripped env value, or default when unset or blank."""
    raw = (os.getenv(name) or "").strip()
    return raw or default


def env_int(name: str, default: int) -> int:
    raw = env_str(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("config_invalid_int", name=name, value=raw, default=default)
        return default


def env_float(name: str, default: float) -> float:
    raw = env_str(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("config_invalid_float", name=name, value=raw, default=default)
        return default
    if not math.isfinite(value):
        logger.warning("config_invalid_float", name=name, value=raw, default=default)
        return default
    return value
