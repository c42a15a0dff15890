"""
Attachment state boundary.

The orchestrator never touches storage directly; the host implements
AttachmentStateAdapter on top of whatever it uses (CMS post meta, a database
row, a JSON sidecar...). InMemoryStateAdapter is the reference implementation.

The "processing" marker is advisory: is_processing() followed by
set_processing() is read-then-set, not an atomic compare-and-set.
"""

import dataclasses
import logging
import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone

from ..core.errors import AttachmentNotFoundError
from ..core.event_log import ErrorRecord

logger = logging.getLogger(__name__)


@dataclass
class AttachmentState:
    """Per-attachment upload bookkeeping."""
    ref: str
    local_path: str
    cdn_url: str | None = None
    upload_time: datetime | None = None
    failed: bool = False
    error: ErrorRecord | None = None
    error_time: datetime | None = None
    attempt_time: datetime | None = None
    processing: bool = False


class AttachmentStateAdapter(ABC):
    """Interface the upload service uses to read files and persist outcomes."""

    @abstractmethod
    def get_file(self, ref: str) -> tuple[str, int]:
        """
        Return (local_path, size_bytes) for an attachment.

        Raises:
            AttachmentNotFoundError: unknown ref.
            OSError: the file is registered but cannot be stat-ed.
        """

    @abstractmethod
    def mark_uploaded(self, ref: str, cdn_url: str) -> None:
        """Store the CDN URL and upload time; clears any failure markers."""

    @abstractmethod
    def mark_failed(self, ref: str, record: ErrorRecord) -> None:
        """Flag the attachment as failed and keep the error for display."""

    @abstractmethod
    def clear_failure_markers(self, ref: str) -> None:
        pass

    @abstractmethod
    def get_state(self, ref: str) -> AttachmentState:
        pass

    @abstractmethod
    def is_processing(self, ref: str) -> bool:
        pass

    @abstractmethod
    def set_processing(self, ref: str, processing: bool) -> None:
        pass

    @abstractmethod
    def list_failed(self) -> list[str]:
        """Refs currently flagged as failed."""

    @abstractmethod
    def list_pending(self) -> list[str]:
        """Refs that have no CDN URL yet (failed ones included)."""


class InMemoryStateAdapter(AttachmentStateAdapter):
    """
    In-process attachment store.

    Not suitable for multi-instance deployments; see JsonSidecarStateAdapter
    for a file-backed variant.
    """

    def __init__(self):
        self._states: dict[str, AttachmentState] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Persistence hook
    # ------------------------------------------------------------------

    def _commit(self) -> None:
        """Called with the lock held after every mutation."""

    def _require(self, ref: str) -> AttachmentState:
        state = self._states.get(ref)
        if state is None:
            raise AttachmentNotFoundError(ref)
        return state

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, ref: str, local_path: str) -> AttachmentState:
        """Add (or re-point) an attachment. Existing upload state is kept."""
        with self._lock:
            state = self._states.get(ref)
            if state is None:
                state = AttachmentState(ref=ref, local_path=local_path)
                self._states[ref] = state
                logger.info("Attachment registered: %s -> %s", ref, local_path)
            else:
                state.local_path = local_path
            self._commit()
            return dataclasses.replace(state)

    # ------------------------------------------------------------------
    # AttachmentStateAdapter
    # ------------------------------------------------------------------

    def get_file(self, ref: str) -> tuple[str, int]:
        with self._lock:
            path = self._require(ref).local_path
        return path, os.path.getsize(path)

    def mark_uploaded(self, ref: str, cdn_url: str) -> None:
        with self._lock:
            state = self._require(ref)
            state.cdn_url = cdn_url
            state.upload_time = datetime.now(timezone.utc)
            state.failed = False
            state.error = None
            state.error_time = None
            self._commit()

    def mark_failed(self, ref: str, record: ErrorRecord) -> None:
        with self._lock:
            state = self._require(ref)
            state.failed = True
            state.error = record
            state.error_time = record.timestamp
            state.attempt_time = datetime.now(timezone.utc)
            self._commit()

    def clear_failure_markers(self, ref: str) -> None:
        with self._lock:
            state = self._require(ref)
            state.failed = False
            state.error = None
            state.error_time = None
            self._commit()

    def get_state(self, ref: str) -> AttachmentState:
        with self._lock:
            return dataclasses.replace(self._require(ref))

    def is_processing(self, ref: str) -> bool:
        with self._lock:
            return self._require(ref).processing

    def set_processing(self, ref: str, processing: bool) -> None:
        with self._lock:
            self._require(ref).processing = processing
            self._commit()

    def list_failed(self) -> list[str]:
        with self._lock:
            return [ref for ref, s in self._states.items() if s.failed]

    def list_pending(self) -> list[str]:
        with self._lock:
            return [ref for ref, s in self._states.items() if not s.cdn_url]
