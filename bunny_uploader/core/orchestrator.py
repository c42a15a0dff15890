"""
Upload orchestration: ordered transport fallback.

Strategy:
    1. prefer_ftp set, or no access key → FTP only.
    2. Otherwise HTTP PUT first, FTP as fallback.
    3. Large files follow LargeFilePolicy (stream over HTTP, or go straight to FTP).

Each transport is tried at most once per invocation; there is no automatic
retry and no backoff. A caller-level retry is simply a new invocation.

State machine:
    NOT_STARTED → TRYING_TRANSPORT(i) → SUCCEEDED | EXHAUSTED

No integrity check is made after a successful transfer (no checksum, no
re-fetch).
"""

import logging
from enum import Enum

from ..transport import FtpTransport, HttpPutTransport, Transport
from ..transport.http_put import LARGE_FILE_THRESHOLD
from .errors import TransportError, TransportErrorKind
from .event_log import EventLog
from .models import (
    CONFIGURATION_ERROR,
    TransportAttempt,
    UploadFailure,
    UploadRequest,
    UploadResult,
    UploadSuccess,
)
from .settings_resolver import BunnySettings

logger = logging.getLogger(__name__)


class UploadState(str, Enum):
    NOT_STARTED = "not_started"
    TRYING_TRANSPORT = "trying_transport"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


class LargeFilePolicy(str, Enum):
    """How files at/above the size threshold are routed."""
    HTTP_STREAM = "http_stream"   # normal chain; HTTP streams the body from disk
    FTP_ONLY = "ftp_only"         # skip HTTP entirely for large files


class UploadOrchestrator:
    """
    Drives one upload request through the ordered transport chain.

    Holds no per-request state between invocations; the only shared object is
    the EventLog, which is safe for concurrent use.
    """

    def __init__(
        self,
        http_transport: Transport | None = None,
        ftp_transport: Transport | None = None,
        event_log: EventLog | None = None,
        large_file_threshold: int = LARGE_FILE_THRESHOLD,
        large_file_policy: LargeFilePolicy = LargeFilePolicy.HTTP_STREAM,
    ):
        self.http_transport = http_transport or HttpPutTransport(
            large_file_threshold=large_file_threshold,
        )
        self.ftp_transport = ftp_transport or FtpTransport()
        self.event_log = event_log or EventLog()
        self.large_file_threshold = large_file_threshold
        self.large_file_policy = LargeFilePolicy(large_file_policy)

    def transport_chain(self, settings: BunnySettings, size_bytes: int) -> list[Transport]:
        """Return the ordered list of transports to try for a file of this size."""
        http = self.http_transport
        ftp = self.ftp_transport
        http_ok = http.is_available(settings)
        ftp_ok = ftp.is_available(settings)

        large = size_bytes >= self.large_file_threshold
        if large and self.large_file_policy == LargeFilePolicy.FTP_ONLY and ftp_ok:
            return [ftp]

        if settings.prefer_ftp or not http_ok:
            return [ftp] if ftp_ok else []

        chain = [http]
        if ftp_ok:
            chain.append(ftp)
        return chain

    def upload(
        self,
        request: UploadRequest,
        settings: BunnySettings,
        attachment_ref: str | None = None,
    ) -> UploadResult:
        """
        Push one file through the transport chain.

        Never raises for expected failures (bad credentials, unreachable host,
        missing file); always returns UploadSuccess or UploadFailure.

        Raises:
            TypeError: settings or request is None (caller contract violation).
        """
        if settings is None:
            raise TypeError("settings must be a resolved BunnySettings, not None")
        if request is None:
            raise TypeError("request must not be None")

        log = self.event_log
        filename = request.remote_filename
        chain = self.transport_chain(settings, request.size_bytes)
        attempts: list[TransportAttempt] = []
        state = UploadState.NOT_STARTED

        if not chain:
            message = "No upload transport is configured (need an access key or FTP credentials)"
            log.record_error(message, "no_transport_available", attachment_ref, filename)
            return UploadFailure(
                kind=CONFIGURATION_ERROR,
                message=message,
                error_code="no_transport_available",
            )

        log.record_debug(
            f"[orchestrator] {filename} ({request.size_bytes} bytes): "
            f"chain={[t.name for t in chain]}"
        )

        for index, transport in enumerate(chain):
            state = UploadState.TRYING_TRANSPORT
            log.record_debug(
                f"[orchestrator] {state.value}({index}): {transport.name} for {filename}"
            )
            try:
                cdn_url = transport.upload(
                    settings, request.local_path, filename, request.size_bytes,
                )
            except TransportError as e:
                attempt = TransportAttempt.from_error(transport.name, e)
            except Exception as e:
                logger.error(
                    "[orchestrator] Unexpected %s error for %s: %s",
                    transport.name, filename, e, exc_info=True,
                )
                attempt = TransportAttempt(
                    transport=transport.name,
                    kind=TransportErrorKind.WRITE_FAILED.value,
                    error_text=f"Unexpected {type(e).__name__}: {e}",
                    error_code=f"{transport.name}_unexpected_error",
                )
            else:
                state = UploadState.SUCCEEDED
                attempts.append(TransportAttempt.success(transport.name))
                log.record_debug(
                    f"[orchestrator] {state.value}: {filename} via {transport.name} -> {cdn_url}"
                )
                return UploadSuccess(
                    cdn_url=cdn_url,
                    transport=transport.name,
                    attempted_transports=attempts,
                )

            attempts.append(attempt)
            log.record_error(attempt.error_text, attempt.error_code, attachment_ref, filename)
            if index + 1 < len(chain):
                log.record_debug(
                    f"[orchestrator] {transport.name.upper()} upload failed, "
                    f"trying {chain[index + 1].name.upper()} as fallback"
                )

        state = UploadState.EXHAUSTED
        last = attempts[-1]
        log.record_debug(
            f"[orchestrator] {state.value}: {filename} after {len(attempts)} attempt(s)"
        )
        return UploadFailure(
            kind=last.kind,
            message=last.error_text,
            error_code=last.error_code,
            attempted_transports=attempts,
        )
