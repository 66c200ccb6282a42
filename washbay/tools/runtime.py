"""
Shared engine instance behind the tool functions.

Every tool module talks to the same ``BookingEngine`` so that availability,
bookings and partner configuration stay consistent across surfaces.
"""

import logging
from datetime import datetime
from typing import Callable, Optional, TypedDict

from pydantic import ValidationError

from washbay.engine.engine import BookingEngine
from washbay.errors import BookingEngineError

logger = logging.getLogger(__name__)


class ToolFailure(TypedDict):
    success: bool
    error: str
    message: str
    retryable: bool


_engine = BookingEngine()


def get_engine() -> BookingEngine:
    return _engine


def reset(clock: Optional[Callable[[], datetime]] = None) -> BookingEngine:
    """Replace the shared engine with an empty one. Used by test fixtures for isolation."""
    global _engine
    _engine = BookingEngine(clock=clock)
    return _engine


def failure(exc: Exception) -> ToolFailure:
    """Map an engine or validation error to the failure result shape."""
    if isinstance(exc, BookingEngineError):
        logger.info("Request rejected (%s): %s", exc.kind, exc.message)
        return {
            "success": False,
            "error": exc.kind,
            "message": exc.message,
            "retryable": exc.retryable,
        }
    if isinstance(exc, ValidationError):
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'request'}: {err['msg']}"
            for err in exc.errors()
        )
        return {
            "success": False,
            "error": "invalid_request",
            "message": f"Invalid request - {problems}.",
            "retryable": False,
        }
    raise exc
