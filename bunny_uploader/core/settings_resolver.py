"""
Bunny.net settings resolution.

Turns a raw key/value config bundle into an immutable BunnySettings object.
Pure: no I/O, no logging, same input always yields the same output.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping
from urllib.parse import quote

from .errors import ConfigurationError

DEFAULT_STORAGE_HOST = "storage.bunnycdn.com"

_TRUTHY = {"1", "true", "yes", "on"}


class MissingField(str, Enum):
    STORAGE_ZONE = "storage_zone"
    PULL_ZONE_BASE_URL = "pull_zone_base_url"
    ACCESS_KEY = "access_key"
    FTP_USERNAME = "ftp_username"
    FTP_PASSWORD = "ftp_password"


@dataclass(frozen=True)
class BunnySettings:
    """Validated, normalized Bunny.net configuration. Read-only once resolved."""
    storage_zone: str
    access_key: str
    storage_region: str
    storage_endpoint_host: str
    pull_zone_base_url: str     # always ends with exactly one "/"
    ftp_host: str
    ftp_username: str
    ftp_password: str
    prefer_ftp: bool

    @property
    def http_available(self) -> bool:
        return bool(self.access_key)

    @property
    def ftp_available(self) -> bool:
        return bool(self.ftp_username and self.ftp_password)

    def cdn_url(self, filename: str) -> str:
        """Public pull-zone URL for a bare filename, percent-encoded as one path segment."""
        return self.pull_zone_base_url + quote(filename, safe="")


def _text(raw: Mapping[str, Any], key: str) -> str:
    value = raw.get(key)
    if value is None:
        return ""
    return str(value).strip()


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUTHY


def normalize_pull_zone_url(url: str) -> str:
    """Trim trailing slashes, then append exactly one."""
    return url.rstrip("/") + "/"


def storage_endpoint_for(region: str) -> str:
    return f"{region}.{DEFAULT_STORAGE_HOST}" if region else DEFAULT_STORAGE_HOST


def normalize_ftp_host(host: str) -> str:
    """Regional FTP hosts (e.g. ny.storage.bunnycdn.com) are forced to the main host."""
    if not host:
        return DEFAULT_STORAGE_HOST
    if host.lower().endswith("." + DEFAULT_STORAGE_HOST):
        return DEFAULT_STORAGE_HOST
    return host


def get_settings_errors(raw: Mapping[str, Any]) -> list[MissingField]:
    """
    Return the missing required fields of a raw config bundle (empty list = valid).

    Rules:
        - storage_zone and pull_zone_base_url are always required.
        - At least one credential set: access_key, or ftp_username + ftp_password.
        - prefer_ftp additionally requires ftp_username + ftp_password.
    """
    missing: list[MissingField] = []

    if not _text(raw, "storage_zone"):
        missing.append(MissingField.STORAGE_ZONE)

    access_key = _text(raw, "access_key")
    ftp_username = _text(raw, "ftp_username")
    ftp_password = _text(raw, "ftp_password")
    ftp_complete = bool(ftp_username and ftp_password)

    if not access_key and not ftp_complete:
        missing.append(MissingField.ACCESS_KEY)
        if not ftp_username:
            missing.append(MissingField.FTP_USERNAME)
        if not ftp_password:
            missing.append(MissingField.FTP_PASSWORD)
    elif _flag(raw.get("prefer_ftp")) and not ftp_complete:
        if not ftp_username:
            missing.append(MissingField.FTP_USERNAME)
        if not ftp_password:
            missing.append(MissingField.FTP_PASSWORD)

    if not _text(raw, "pull_zone_base_url"):
        missing.append(MissingField.PULL_ZONE_BASE_URL)

    return missing


def resolve(raw: Mapping[str, Any]) -> BunnySettings:
    """
    Validate and normalize a raw config bundle.

    Raises:
        ConfigurationError: with the list of missing fields; no partial settings
        object is ever returned.
    """
    missing = get_settings_errors(raw)
    if missing:
        raise ConfigurationError(missing)

    region = _text(raw, "storage_region")
    ftp_password = _text(raw, "ftp_password")

    return BunnySettings(
        storage_zone=_text(raw, "storage_zone"),
        access_key=_text(raw, "access_key") or ftp_password,
        storage_region=region,
        storage_endpoint_host=storage_endpoint_for(region),
        pull_zone_base_url=normalize_pull_zone_url(_text(raw, "pull_zone_base_url")),
        ftp_host=normalize_ftp_host(_text(raw, "ftp_host")),
        ftp_username=_text(raw, "ftp_username"),
        ftp_password=ftp_password,
        prefer_ftp=_flag(raw.get("prefer_ftp")),
    )
