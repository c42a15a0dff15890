"""
Upload transports: HTTP PUT (Storage API) and FTP/FTPS.
"""

from .base import Transport
from .http_put import HttpPutTransport
from .ftp import FtpTransport

__all__ = [
    "Transport",
    "HttpPutTransport",
    "FtpTransport",
]
