"""
Upload service: the host-facing API.

Wires the Settings Resolver, the Upload Orchestrator, the bounded EventLog
and an AttachmentStateAdapter together:

- upload(request)           : push one file, return UploadResult
- upload_attachment(ref)    : same, reading / persisting via the state adapter
- retry_failed()            : re-run every attachment flagged as failed
- upload_pending()          : push every audio attachment without a CDN URL
- delivery_url(ref, origin) : CDN URL if uploaded, origin URL otherwise

Blocking: every call runs the transport chain on the calling thread. The
async API layer offloads it to a thread pool.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Mapping

from ..config import Settings, get_settings
from ..state import AttachmentStateAdapter, InMemoryStateAdapter
from ..transport import FtpTransport, HttpPutTransport
from ..util import is_audio
from .errors import ConfigurationError, TransportErrorKind
from .event_log import DebugRecord, ErrorRecord, EventLog
from .models import (
    CONFIGURATION_ERROR,
    UploadFailure,
    UploadRequest,
    UploadResult,
)
from .orchestrator import LargeFilePolicy, UploadOrchestrator
from .settings_resolver import BunnySettings, MissingField, get_settings_errors, resolve

logger = logging.getLogger(__name__)

UPLOAD_IN_PROGRESS = "upload_in_progress"


@dataclass
class BatchSummary:
    """Outcome of a bulk operation (retry failed / upload pending)."""
    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def build_orchestrator(settings: Settings, event_log: EventLog) -> UploadOrchestrator:
    """Construct the transports and orchestrator from service configuration."""
    http = HttpPutTransport(
        timeout=settings.upload_http_timeout,
        large_file_timeout=settings.upload_large_http_timeout,
        large_file_threshold=settings.upload_large_file_threshold,
        chunk_size=settings.upload_stream_chunk_size,
    )
    ftp = FtpTransport(timeout=settings.upload_ftp_timeout)
    return UploadOrchestrator(
        http_transport=http,
        ftp_transport=ftp,
        event_log=event_log,
        large_file_threshold=settings.upload_large_file_threshold,
        large_file_policy=LargeFilePolicy(settings.upload_large_file_policy),
    )


class UploadService:
    """
    Bunny.net upload service.

    The resolved BunnySettings are cached after the first successful
    resolution; an incomplete configuration is re-checked on every call.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        adapter: AttachmentStateAdapter | None = None,
        event_log: EventLog | None = None,
        orchestrator: UploadOrchestrator | None = None,
        raw_config: Mapping[str, Any] | None = None,
    ):
        self.settings = settings or get_settings()
        if event_log is None and orchestrator is not None:
            event_log = orchestrator.event_log
        self.event_log = event_log or EventLog(
            error_capacity=self.settings.error_log_capacity,
            debug_capacity=self.settings.debug_log_capacity,
        )
        self.adapter = adapter if adapter is not None else InMemoryStateAdapter()
        self.orchestrator = orchestrator or build_orchestrator(self.settings, self.event_log)
        self.orchestrator.event_log = self.event_log
        self._raw_config = dict(raw_config) if raw_config is not None else self.settings.raw_bunny_config()
        self._resolved: BunnySettings | None = None

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def bunny_settings(self) -> BunnySettings:
        """Resolve (once) and return the Bunny.net settings. Raises ConfigurationError."""
        if self._resolved is None:
            self._resolved = resolve(self._raw_config)
            logger.info(
                "[service] Settings resolved: zone=%s endpoint=%s prefer_ftp=%s",
                self._resolved.storage_zone,
                self._resolved.storage_endpoint_host,
                self._resolved.prefer_ftp,
            )
        return self._resolved

    def get_settings_errors(self, raw_config: Mapping[str, Any] | None = None) -> list[MissingField]:
        return get_settings_errors(self._raw_config if raw_config is None else raw_config)

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    def upload(self, request: UploadRequest, attachment_ref: str | None = None) -> UploadResult:
        """Push one file. Configuration problems come back as an UploadFailure."""
        try:
            bunny = self.bunny_settings()
        except ConfigurationError as e:
            self.event_log.record_error(
                str(e), "missing_settings", attachment_ref, request.remote_filename,
            )
            return UploadFailure(
                kind=CONFIGURATION_ERROR,
                message=str(e),
                error_code="missing_settings",
                missing_fields=[m.value for m in e.missing],
            )
        return self.orchestrator.upload(request, bunny, attachment_ref=attachment_ref)

    def upload_attachment(self, ref: str, skip_uploaded: bool = False) -> UploadResult | None:
        """
        Upload one attachment and persist the outcome through the state adapter.

        Args:
            ref: Attachment reference known to the adapter.
            skip_uploaded: Return None without uploading if a CDN URL already exists.

        Raises:
            AttachmentNotFoundError: unknown ref.
        """
        adapter = self.adapter
        state = adapter.get_state(ref)
        if skip_uploaded and state.cdn_url:
            return None

        filename = os.path.basename(state.local_path)
        if adapter.is_processing(ref):
            self.event_log.record_debug(f"[service] {ref} is already being uploaded, skipping")
            return UploadFailure(
                kind=UPLOAD_IN_PROGRESS,
                message=f"Upload already in progress for {filename}",
                error_code=UPLOAD_IN_PROGRESS,
            )

        try:
            local_path, size = adapter.get_file(ref)
        except OSError as e:
            message = f"File not found: {state.local_path}"
            record = self.event_log.record_error(message, "file_not_found", ref, filename)
            adapter.mark_failed(ref, record)
            logger.debug("[service] stat failed for %s: %s", ref, e)
            return UploadFailure(
                kind=TransportErrorKind.IO_ERROR.value,
                message=message,
                error_code="file_not_found",
            )

        adapter.clear_failure_markers(ref)
        adapter.set_processing(ref, True)
        try:
            request = UploadRequest(local_path=local_path, remote_filename=filename, size_bytes=size)
            result = self.upload(request, attachment_ref=ref)
        finally:
            adapter.set_processing(ref, False)

        self._persist(ref, filename, result)
        return result

    def _persist(self, ref: str, filename: str, result: UploadResult) -> None:
        if result.ok:
            self.adapter.mark_uploaded(ref, result.cdn_url)
            self.event_log.record_debug(
                DebugRecord(f"Successfully uploaded to Bunny.net: {filename}")
            )
            return

        self.adapter.mark_failed(
            ref,
            ErrorRecord(
                message=result.message,
                error_code=result.error_code,
                attachment_ref=ref,
                filename=filename,
            ),
        )
        self.event_log.record_error(
            f"Failed to upload to Bunny.net: {filename}", "upload_failed", ref, filename,
        )

    def retry_failed(self) -> BatchSummary:
        """Fresh upload attempt for every attachment flagged as failed."""
        summary = BatchSummary()
        for ref in self.adapter.list_failed():
            self._run_batch_item(ref, summary)
        logger.info(
            "[service] Retry finished: %d ok, %d failed",
            len(summary.succeeded), len(summary.failed),
        )
        return summary

    def upload_pending(self) -> BatchSummary:
        """Upload every audio attachment that has no CDN URL yet."""
        summary = BatchSummary()
        for ref in self.adapter.list_pending():
            if not is_audio(self.adapter.get_state(ref).local_path):
                summary.skipped.append(ref)
                continue
            self._run_batch_item(ref, summary)
        logger.info(
            "[service] Pending upload finished: %d ok, %d failed, %d skipped",
            len(summary.succeeded), len(summary.failed), len(summary.skipped),
        )
        return summary

    def _run_batch_item(self, ref: str, summary: BatchSummary) -> None:
        result = self.upload_attachment(ref, skip_uploaded=True)
        if result is None:
            summary.skipped.append(ref)
        elif result.ok:
            summary.succeeded.append(ref)
        else:
            summary.failed.append(ref)

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def delivery_url(self, ref: str, origin_url: str) -> str:
        """Rewrite an origin URL to the CDN URL when the attachment has been mirrored."""
        try:
            state = self.adapter.get_state(ref)
        except KeyError:
            return origin_url
        if state.cdn_url:
            self.event_log.record_debug(
                f"Replacing URL for attachment {ref}: "
                f"{os.path.basename(origin_url)} -> {os.path.basename(state.cdn_url)}"
            )
            return state.cdn_url
        return origin_url

    # ------------------------------------------------------------------
    # Event log passthrough
    # ------------------------------------------------------------------

    def list_errors(self) -> list[ErrorRecord]:
        return self.event_log.list_errors()

    def list_debug(self) -> list[DebugRecord]:
        return self.event_log.list_debug()

    def clear_errors(self) -> None:
        self.event_log.clear_errors()

    def clear_debug(self) -> None:
        self.event_log.clear_debug()
