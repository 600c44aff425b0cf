"""
Shared-secret access gate.

The reference code comes from the ACCESS_CODE environment variable. With no
code configured every check fails. Comparison is constant-time and the code
value is never logged.
"""

from __future__ import annotations

import hmac

from lovebrain.lovebrain_logging import get_logger

logger = get_logger(__name__)


class AccessGate:
    """Accept or reject a presented access code."""

    def __init__(self, access_code: str | None) -> None:
        self._access_code = (access_code or "").strip() or None

    @property
    def configured(self) -> bool:
        return self._access_code is not None

    def verify(self, presented: str | None) -> bool:
        if not self.configured:
            logger.warning("access_code_not_configured", hint="set ACCESS_CODE")
            return False
        if not presented:
            return False
        ok = hmac.compare_digest(presented.encode("utf-8"), self._access_code.encode("utf-8"))
        logger.info("access_code_checked", accepted=ok)
        return ok
