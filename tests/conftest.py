"""
Shared fixtures and fakes for the test suite.

None of these tests require network access or Bunny.net credentials.
"""

import pytest

from bunny_uploader.core.settings_resolver import resolve
from bunny_uploader.transport import Transport


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeTransport(Transport):
    """Call-counting transport that either returns the CDN URL or raises a preset error."""

    def __init__(self, name: str, error: Exception | None = None, available: bool = True):
        self.name = name
        self.error = error
        self.available = available
        self.calls: list[tuple[str, str, int | None]] = []

    def is_available(self, settings) -> bool:
        return self.available

    def upload(self, settings, local_path, remote_filename, size_bytes=None):
        self.calls.append((local_path, remote_filename, size_bytes))
        if self.error is not None:
            raise self.error
        return settings.cdn_url(remote_filename)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def raw_config() -> dict:
    return {
        "storage_zone": "zone",
        "access_key": "secret-access-key",
        "storage_region": "",
        "pull_zone_base_url": "https://zone.b-cdn.net",
        "ftp_host": "storage.bunnycdn.com",
        "ftp_username": "zone",
        "ftp_password": "ftp-password",
        "prefer_ftp": False,
    }


@pytest.fixture
def bunny_settings(raw_config):
    return resolve(raw_config)


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "a.mp3"
    path.write_bytes(b"ID3" + b"\x00" * 997)
    return path


@pytest.fixture
def fake_transport():
    """Return the FakeTransport class so tests can build configured instances."""
    return FakeTransport
