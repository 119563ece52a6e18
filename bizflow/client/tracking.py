"""
Event & Error Tracking

State machines report what happened through an injected Tracker rather
than calling an analytics SDK directly. LoggingTracker writes to the
standard logs; tests pass a recording fake.
"""
from typing import Any, Dict, Optional, Protocol

from bizflow.utils.logging import get_logger


class Tracker(Protocol):
    def track_event(self, name: str, properties: Optional[Dict[str, Any]] = None) -> None:
        ...

    def track_error(self, error: BaseException, context: Optional[Dict[str, Any]] = None) -> None:
        ...


class LoggingTracker:
    """Default tracker: one log line per event or error."""

    def __init__(self, logger_name: str = "bizflow.client.tracking"):
        self._logger = get_logger(logger_name)

    def track_event(self, name: str, properties: Optional[Dict[str, Any]] = None) -> None:
        self._logger.info(
            f"event: {name} {properties or {}}",
            extra={"event_type": name}
        )

    def track_error(self, error: BaseException, context: Optional[Dict[str, Any]] = None) -> None:
        self._logger.warning(
            f"error: {type(error).__name__}: {error} {context or {}}",
            extra={"event_type": "error"}
        )
