"""
Exception taxonomy for the upload pipeline.

- ConfigurationError: settings are incomplete; no transport is attempted.
- TransportError: one transport failed; recorded and chained by the orchestrator.
- ExhaustedError: every transport failed; raised only by UploadFailure.unwrap().
"""

from enum import Enum


class TransportErrorKind(str, Enum):
    """Machine-readable classification of a single transport failure."""
    CONNECT_FAILED = "connect_failed"
    AUTH_FAILED = "auth_failed"
    WRITE_FAILED = "write_failed"
    HTTP_STATUS_4XX = "http_status_4xx"
    HTTP_STATUS_5XX = "http_status_5xx"
    TIMEOUT = "timeout"
    IO_ERROR = "io_error"


class BunnyUploaderError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(BunnyUploaderError):
    """Raised when the Bunny.net settings bundle is missing required fields."""

    def __init__(self, missing):
        self.missing = list(missing)
        names = ", ".join(str(getattr(m, "value", m)) for m in self.missing)
        super().__init__(f"Missing required Bunny.net settings: {names}")


class TransportError(BunnyUploaderError):
    """A single transport strategy failed to push the file."""

    def __init__(
        self,
        kind: TransportErrorKind,
        message: str,
        error_code: str = "",
        http_status: int | None = None,
        transport: str = "",
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.error_code = error_code or kind.value
        self.http_status = http_status
        self.transport = transport

    def __repr__(self) -> str:
        return (
            f"TransportError(transport={self.transport!r}, kind={self.kind.value!r}, "
            f"code={self.error_code!r}, status={self.http_status!r})"
        )


class ExhaustedError(BunnyUploaderError):
    """All transports failed. Carries the UploadFailure with the full attempt history."""

    def __init__(self, failure):
        self.failure = failure
        super().__init__(failure.message)


class AttachmentNotFoundError(BunnyUploaderError, KeyError):
    """The attachment reference is unknown to the state adapter."""

    def __init__(self, ref: str):
        self.ref = ref
        super().__init__(f"Attachment {ref} not found")

    def __str__(self) -> str:
        return f"Attachment {self.ref} not found"
