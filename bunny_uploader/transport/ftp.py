"""
FTP / FTPS transport to Bunny.net storage.

Connection strategy:
    1. Explicit TLS (FTP_TLS + AUTH TLS) on port 21.
    2. Plaintext FTP fallback if the TLS connect or handshake fails.

Then login, passive mode, binary STOR of the bare filename into the zone
root, and disconnect. Every call opens and closes its own connection.
"""

import ftplib
import logging
import socket

from ..core.errors import TransportErrorKind
from ..core.settings_resolver import BunnySettings
from .base import Transport

logger = logging.getLogger(__name__)

FTP_PORT = 21
CONNECT_TIMEOUT = 30.0


class FtpTransport(Transport):
    """Bunny.net storage upload via ftplib (FTPS first, then plain FTP)."""

    name = "ftp"

    def __init__(
        self,
        timeout: float = CONNECT_TIMEOUT,
        port: int = FTP_PORT,
        tls_factory=ftplib.FTP_TLS,
        plain_factory=ftplib.FTP,
    ):
        self.timeout = timeout
        self.port = port
        self._tls_factory = tls_factory
        self._plain_factory = plain_factory

    def is_available(self, settings: BunnySettings) -> bool:
        return settings.ftp_available

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def _connect_tls(self, host: str):
        ftp = self._tls_factory(timeout=self.timeout)
        try:
            ftp.connect(host, self.port)
            ftp.auth()
        except (OSError, EOFError, ftplib.Error):
            _close_quietly(ftp)
            raise
        return ftp

    def _connect_plain(self, host: str):
        ftp = self._plain_factory(timeout=self.timeout)
        try:
            ftp.connect(host, self.port)
        except (OSError, EOFError, ftplib.Error):
            _close_quietly(ftp)
            raise
        return ftp

    def _connect(self, host: str):
        """Return (connection, secure) or raise TransportError."""
        logger.debug("[ftp] Trying explicit FTPS connection to: %s", host)
        try:
            return self._connect_tls(host), True
        except (OSError, EOFError, ftplib.Error) as e:
            logger.debug("[ftp] FTPS connection failed (%s), trying regular FTP", e)

        try:
            return self._connect_plain(host), False
        except (TimeoutError, socket.timeout) as e:
            raise self._error(
                TransportErrorKind.TIMEOUT,
                f"Timed out connecting to FTP server: {host}",
                "ftp_timeout",
            ) from e
        except socket.gaierror as e:
            raise self._error(
                TransportErrorKind.CONNECT_FAILED,
                f"Could not resolve hostname: {host}",
                "hostname_resolution_failed",
            ) from e
        except (OSError, EOFError, ftplib.Error) as e:
            raise self._error(
                TransportErrorKind.CONNECT_FAILED,
                f"Could not connect to FTP server: {host} ({e})",
                "ftp_connect_failed",
            ) from e

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def upload(
        self,
        settings: BunnySettings,
        local_path: str,
        remote_filename: str,
        size_bytes: int | None = None,
    ) -> str:
        try:
            fh = open(local_path, "rb")
        except OSError as e:
            raise self._error(
                TransportErrorKind.IO_ERROR,
                f"Could not open file for FTP upload: {local_path} ({e})",
                "ftp_file_read_error",
            ) from e

        with fh:
            ftp, secure = self._connect(settings.ftp_host)
            try:
                self._login(ftp, settings, secure)
                self._store(ftp, fh, remote_filename)
            except BaseException:
                _close_quietly(ftp)
                raise
            _quit_quietly(ftp)

        logger.info(
            "[ftp] Uploaded %s via %s", remote_filename, "FTPS" if secure else "FTP",
        )
        return settings.cdn_url(remote_filename)

    def _login(self, ftp, settings: BunnySettings, secure: bool) -> None:
        logger.debug("[ftp] Attempting FTP login with username: %s", settings.ftp_username)
        try:
            ftp.login(settings.ftp_username, settings.ftp_password)
            if secure:
                ftp.prot_p()
            ftp.set_pasv(True)
        except ftplib.error_perm as e:
            raise self._error(
                TransportErrorKind.AUTH_FAILED,
                f"FTP login failed for user: {settings.ftp_username} ({e})",
                "ftp_login_failed",
            ) from e
        except (TimeoutError, socket.timeout) as e:
            raise self._error(
                TransportErrorKind.TIMEOUT,
                f"FTP login timed out for user: {settings.ftp_username}",
                "ftp_timeout",
            ) from e
        except (OSError, EOFError, ftplib.Error) as e:
            raise self._error(
                TransportErrorKind.CONNECT_FAILED,
                f"FTP session failed during login: {e}",
                "ftp_connect_failed",
            ) from e

    def _store(self, ftp, fh, remote_filename: str) -> None:
        try:
            ftp.storbinary(f"STOR {remote_filename}", fh)
        except (TimeoutError, socket.timeout) as e:
            raise self._error(
                TransportErrorKind.TIMEOUT,
                f"FTP upload timed out for file: {remote_filename}",
                "ftp_timeout",
            ) from e
        except (OSError, EOFError, ftplib.Error) as e:
            raise self._error(
                TransportErrorKind.WRITE_FAILED,
                f"FTP upload failed for file: {remote_filename} ({e})",
                "ftp_upload_failed",
            ) from e


def _close_quietly(ftp) -> None:
    try:
        ftp.close()
    except OSError as e:
        logger.debug("[ftp] close() failed: %s", e)


def _quit_quietly(ftp) -> None:
    """Polite QUIT; the upload already succeeded, so a failing QUIT only closes the socket."""
    try:
        ftp.quit()
    except (OSError, EOFError, ftplib.Error) as e:
        logger.debug("[ftp] QUIT failed (%s), closing", e)
        _close_quietly(ftp)
