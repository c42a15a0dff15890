"""
HTTP PUT transport against the Bunny.net Storage API.

    PUT https://{endpoint}/{zone}/{filename}
    AccessKey: <key>
    Content-Type: application/octet-stream

Small files are sent as a single buffer. Files at or above the large-file
threshold are streamed from disk in fixed-size chunks with a longer timeout,
so they are never loaded fully into memory.

Timeouts: httpx.Timeout bounds connect and each individual read / write.
Streamed bodies also carry an overall deadline (large_file_timeout) checked
between chunks, so a slow peer cannot stretch the transfer indefinitely.
The response read after the body is still bounded per read only.
"""

import logging
import time
from typing import Callable, Iterator
from urllib.parse import quote

import httpx

from ..core.errors import TransportErrorKind
from ..core.settings_resolver import BunnySettings
from .base import Transport

logger = logging.getLogger(__name__)

LARGE_FILE_THRESHOLD = 50 * 1024 * 1024
DEFAULT_TIMEOUT = 60.0
LARGE_FILE_TIMEOUT = 600.0
STREAM_CHUNK_SIZE = 1024 * 1024
CONNECT_TIMEOUT = 30.0


def _mask(secret: str) -> str:
    return secret[:5] + "..." if secret else "empty"


class HttpPutTransport(Transport):
    """Bunny.net Storage API upload via httpx."""

    name = "http"

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        large_file_timeout: float = LARGE_FILE_TIMEOUT,
        large_file_threshold: int = LARGE_FILE_THRESHOLD,
        chunk_size: int = STREAM_CHUNK_SIZE,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.timeout = timeout
        self.large_file_timeout = large_file_timeout
        self.large_file_threshold = large_file_threshold
        self.chunk_size = chunk_size
        self._transport = transport
        self._clock = clock

    def is_available(self, settings: BunnySettings) -> bool:
        return settings.http_available

    def is_large(self, size_bytes: int) -> bool:
        return size_bytes >= self.large_file_threshold

    @staticmethod
    def storage_url(settings: BunnySettings, remote_filename: str) -> str:
        # The filename is one path segment: "#", "?" and "/" must not reach the URL raw.
        name = quote(remote_filename, safe="")
        return f"https://{settings.storage_endpoint_host}/{settings.storage_zone}/{name}"

    def _build_client(self, total_timeout: float) -> httpx.Client:
        """One client per upload: no pooling, connect bounded separately from the transfer."""
        return httpx.Client(
            timeout=httpx.Timeout(
                total_timeout, connect=min(CONNECT_TIMEOUT, total_timeout),
            ),
            transport=self._transport,
        )

    def _iter_file(self, local_path: str, deadline: float) -> Iterator[bytes]:
        with open(local_path, "rb") as fh:
            while True:
                if self._clock() > deadline:
                    raise httpx.WriteTimeout("Streaming upload exceeded its total time limit")
                chunk = fh.read(self.chunk_size)
                if not chunk:
                    break
                yield chunk

    def upload(
        self,
        settings: BunnySettings,
        local_path: str,
        remote_filename: str,
        size_bytes: int | None = None,
    ) -> str:
        size = self._file_size(local_path, size_bytes)
        url = self.storage_url(settings, remote_filename)
        large = self.is_large(size)
        headers = {
            "AccessKey": settings.access_key,
            "Content-Type": "application/octet-stream",
        }

        logger.debug(
            "[http] PUT %s (%d bytes, streaming=%s, zone=%s, key=%s)",
            url, size, large, settings.storage_zone, _mask(settings.access_key),
        )

        if large:
            # Open eagerly so a missing file surfaces as io_error before any request.
            try:
                with open(local_path, "rb"):
                    pass
            except OSError as e:
                raise self._error(
                    TransportErrorKind.IO_ERROR,
                    f"Could not open file for HTTP upload: {local_path} ({e})",
                    "http_file_read_error",
                ) from e
            body = self._iter_file(local_path, self._clock() + self.large_file_timeout)
            headers["Content-Length"] = str(size)
            total_timeout = self.large_file_timeout
        else:
            try:
                with open(local_path, "rb") as fh:
                    body = fh.read()
            except OSError as e:
                raise self._error(
                    TransportErrorKind.IO_ERROR,
                    f"Could not read file for HTTP upload: {local_path} ({e})",
                    "http_file_read_error",
                ) from e
            total_timeout = self.timeout

        try:
            with self._build_client(total_timeout) as client:
                response = client.put(url, content=body, headers=headers)
        except httpx.TimeoutException as e:
            raise self._error(
                TransportErrorKind.TIMEOUT,
                f"HTTP API timed out after {total_timeout:.0f}s: {e}",
                "http_timeout",
            ) from e
        except httpx.ConnectError as e:
            raise self._error(
                TransportErrorKind.CONNECT_FAILED,
                f"HTTP API could not connect to {settings.storage_endpoint_host}: {e}",
                "http_connect_failed",
            ) from e
        except httpx.TransportError as e:
            raise self._error(
                TransportErrorKind.WRITE_FAILED,
                f"HTTP API error: {e}",
                "http_request_error",
            ) from e
        except OSError as e:
            # Raised from the streaming generator mid-transfer.
            raise self._error(
                TransportErrorKind.IO_ERROR,
                f"Could not read file for HTTP upload: {local_path} ({e})",
                "http_file_read_error",
            ) from e

        status = response.status_code
        if 200 <= status < 300:
            logger.info("[http] Uploaded %s (%d)", remote_filename, status)
            return settings.cdn_url(remote_filename)

        raise self._error(
            _kind_for_status(status),
            f"HTTP API HTTP error: {status}, Response: {response.text[:200]}",
            f"http_error_{status}",
            http_status=status,
        )


def _kind_for_status(status: int) -> TransportErrorKind:
    if status in (401, 403):
        return TransportErrorKind.AUTH_FAILED
    if 400 <= status < 500:
        return TransportErrorKind.HTTP_STATUS_4XX
    if status >= 500:
        return TransportErrorKind.HTTP_STATUS_5XX
    return TransportErrorKind.WRITE_FAILED
