"""Structured phase results.

Every phase returns a flat mapping with a `status` of success, skipped or
error, an Eastern `timestamp`, and its own counts.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from .market_calendar import EASTERN

logger = logging.getLogger(__name__)

SUCCESS = "success"
SKIPPED = "skipped"
ERROR = "error"


def _timestamp() -> str:
    return datetime.now(EASTERN).isoformat()


def success_result(message: Optional[str] = None, **counts: Any) -> Dict[str, Any]:
    return {
        "status": SUCCESS,
        "message": message or "Operation completed",
        "timestamp": _timestamp(),
        **counts,
    }


def skipped_result(reason: str, **data: Any) -> Dict[str, Any]:
    """Invocation did nothing, e.g. market closed or clock unavailable."""
    logger.info(f"Skipped: {reason}")
    return {"status": SKIPPED, "reason": reason, "timestamp": _timestamp(), **data}


def error_result(message: str, status_code: int = 500, **data: Any) -> Dict[str, Any]:
    return {
        "status": ERROR,
        "message": message or "Unknown error occurred",
        "status_code": status_code,
        "timestamp": _timestamp(),
        **data,
    }
