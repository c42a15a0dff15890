"""
Bounded failure / debug log.

Keeps the last N error records and the last M debug lines in memory for
display by the host (error table, debug panel). Oldest entries are evicted
first. Every record is also forwarded to the standard logger.

Safe for concurrent appends from multiple upload workers.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

DEFAULT_ERROR_CAPACITY = 20
DEFAULT_DEBUG_CAPACITY = 50


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ErrorRecord:
    """One failure entry, as shown in the host's error-log table."""
    message: str
    error_code: str = ""
    attachment_ref: str | None = None
    filename: str | None = None
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class DebugRecord:
    message: str
    timestamp: datetime = field(default_factory=_now)


class EventLog:
    """Two fixed-capacity FIFO ring buffers guarded by one lock."""

    def __init__(
        self,
        error_capacity: int = DEFAULT_ERROR_CAPACITY,
        debug_capacity: int = DEFAULT_DEBUG_CAPACITY,
    ):
        if error_capacity < 1 or debug_capacity < 1:
            raise ValueError("Log capacities must be positive")
        self._errors: deque[ErrorRecord] = deque(maxlen=error_capacity)
        self._debug: deque[DebugRecord] = deque(maxlen=debug_capacity)
        self._lock = threading.Lock()

    @property
    def error_capacity(self) -> int:
        return self._errors.maxlen

    @property
    def debug_capacity(self) -> int:
        return self._debug.maxlen

    # ------------------------------------------------------------------
    # Append
    # ------------------------------------------------------------------

    def record_error(
        self,
        record: ErrorRecord | str,
        error_code: str = "",
        attachment_ref: str | None = None,
        filename: str | None = None,
    ) -> ErrorRecord:
        """Append an error record (or build one from a message). Returns the stored record."""
        if not isinstance(record, ErrorRecord):
            record = ErrorRecord(
                message=record,
                error_code=error_code,
                attachment_ref=attachment_ref,
                filename=filename,
            )
        with self._lock:
            self._errors.append(record)
        logger.error("[%s] %s", record.error_code or "error", record.message)
        return record

    def record_debug(self, record: DebugRecord | str) -> DebugRecord:
        if not isinstance(record, DebugRecord):
            record = DebugRecord(message=record)
        with self._lock:
            self._debug.append(record)
        logger.debug("%s", record.message)
        return record

    # ------------------------------------------------------------------
    # Query / clear
    # ------------------------------------------------------------------

    def list_errors(self) -> list[ErrorRecord]:
        """Stored errors, oldest first, most recent last."""
        with self._lock:
            return list(self._errors)

    def list_debug(self) -> list[DebugRecord]:
        with self._lock:
            return list(self._debug)

    def clear_errors(self) -> None:
        with self._lock:
            self._errors.clear()

    def clear_debug(self) -> None:
        with self._lock:
            self._debug.clear()
