"""
Common contract for transport strategies.

A transport pushes one local file to the storage zone under a bare filename
and returns the public CDN URL, or raises TransportError. Each call opens and
tears down its own connection.
"""

import os
from abc import ABC, abstractmethod

from ..core.errors import TransportError, TransportErrorKind
from ..core.settings_resolver import BunnySettings


class Transport(ABC):
    """Abstract base class for upload transports (HTTP PUT, FTP/FTPS)."""

    name: str = ""

    @abstractmethod
    def is_available(self, settings: BunnySettings) -> bool:
        """True if the settings carry the credentials this transport needs."""

    @abstractmethod
    def upload(
        self,
        settings: BunnySettings,
        local_path: str,
        remote_filename: str,
        size_bytes: int | None = None,
    ) -> str:
        """
        Upload a local file.

        Args:
            settings: Resolved Bunny.net settings.
            local_path: Path to the local file.
            remote_filename: Bare filename used on the storage zone.
            size_bytes: Known file size; stat-ed when omitted.

        Returns:
            Public CDN URL of the uploaded object.

        Raises:
            TransportError: on any connect / auth / write / timeout / IO failure.
        """

    def _file_size(self, local_path: str, size_bytes: int | None) -> int:
        if size_bytes is not None:
            return size_bytes
        try:
            return os.path.getsize(local_path)
        except OSError as e:
            raise self._error(
                TransportErrorKind.IO_ERROR,
                f"File does not exist for {self.name.upper()} upload: {local_path} ({e})",
                f"{self.name}_file_not_found",
            ) from e

    def _error(
        self,
        kind: TransportErrorKind,
        message: str,
        error_code: str = "",
        http_status: int | None = None,
    ) -> TransportError:
        return TransportError(
            kind, message, error_code=error_code, http_status=http_status, transport=self.name,
        )
