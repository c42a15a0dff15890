"""
Request / result value objects for the upload pipeline.
"""

import os
from dataclasses import dataclass, field
from typing import Union

from .errors import ConfigurationError, ExhaustedError, TransportError

CONFIGURATION_ERROR = "configuration_error"


@dataclass(frozen=True)
class UploadRequest:
    """
    One file to push.

    remote_filename is always reduced to its basename: objects are stored at
    the root of the storage zone, never under a directory.
    """
    local_path: str
    remote_filename: str
    size_bytes: int

    def __post_init__(self):
        object.__setattr__(self, "remote_filename", os.path.basename(self.remote_filename))
        if not self.remote_filename:
            raise ValueError("remote_filename must not be empty")
        if self.size_bytes < 0:
            raise ValueError("size_bytes must be >= 0")

    @classmethod
    def from_path(cls, local_path: str, remote_filename: str | None = None) -> "UploadRequest":
        """Build a request from a local file, stat-ing it for its size (raises OSError)."""
        return cls(
            local_path=local_path,
            remote_filename=remote_filename or os.path.basename(local_path),
            size_bytes=os.path.getsize(local_path),
        )


@dataclass(frozen=True)
class TransportAttempt:
    """One transport tried during an upload, kept for diagnostics."""
    transport: str
    kind: str
    error_text: str
    error_code: str = ""
    http_status: int | None = None
    succeeded: bool = False

    @classmethod
    def from_error(cls, transport: str, exc: TransportError) -> "TransportAttempt":
        return cls(
            transport=transport,
            kind=exc.kind.value,
            error_text=exc.message,
            error_code=exc.error_code,
            http_status=exc.http_status,
        )

    @classmethod
    def success(cls, transport: str) -> "TransportAttempt":
        return cls(transport=transport, kind="", error_text="", succeeded=True)


@dataclass(frozen=True)
class UploadSuccess:
    cdn_url: str
    transport: str
    attempted_transports: list[TransportAttempt] = field(default_factory=list)

    ok = True

    def unwrap(self) -> str:
        return self.cdn_url


@dataclass(frozen=True)
class UploadFailure:
    """
    Terminal failure of one upload invocation.

    kind / message / error_code describe the most recent failure; the complete
    ordered history lives in attempted_transports.
    """
    kind: str
    message: str
    error_code: str = ""
    attempted_transports: list[TransportAttempt] = field(default_factory=list)
    missing_fields: list[str] = field(default_factory=list)

    ok = False

    def unwrap(self) -> str:
        if self.kind == CONFIGURATION_ERROR:
            raise ConfigurationError(self.missing_fields)
        raise ExhaustedError(self)


UploadResult = Union[UploadSuccess, UploadFailure]
