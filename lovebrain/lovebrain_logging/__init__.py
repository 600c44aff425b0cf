"""
Structured logging for lovebrain.

JSON logs with timestamp, level, logger, event_type and request_id.
Use get_logger() in every module for aggregation-friendly output.
"""

from lovebrain.lovebrain_logging.logger import (
    bind_request_id,
    clear_request_context,
    get_logger,
)

__all__ = ["bind_request_id", "clear_request_context", "get_logger"]
