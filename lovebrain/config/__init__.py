"""
Configuration management for the lovebrain service.

Loads settings from environment variables and an optional .env file.
Exposes a single source of truth for all service configuration.
"""

from lovebrain.config.settings import Settings, get_settings, parse_fallback_buckets

__all__ = ["Settings", "get_settings", "parse_fallback_buckets"]
