"""
Upload service tests: configuration handling, attachment persistence,
bulk retry / pending uploads and delivery URL rewriting.

Usage:
    pytest tests/test_service.py -v
"""

import json

import pytest

from bunny_uploader.config import Settings
from bunny_uploader.core.errors import (
    AttachmentNotFoundError,
    ConfigurationError,
    TransportError,
    TransportErrorKind,
)
from bunny_uploader.core.models import CONFIGURATION_ERROR, UploadRequest
from bunny_uploader.core.orchestrator import UploadOrchestrator
from bunny_uploader.core.service import UPLOAD_IN_PROGRESS, UploadService, build_orchestrator
from bunny_uploader.core.settings_resolver import MissingField
from bunny_uploader.state import InMemoryStateAdapter, JsonSidecarStateAdapter
from bunny_uploader.transport import FtpTransport, HttpPutTransport


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def failing(name):
    return TransportError(TransportErrorKind.CONNECT_FAILED, f"{name} down", f"{name}_connect_failed")


@pytest.fixture
def transports(fake_transport):
    return fake_transport("http"), fake_transport("ftp")


@pytest.fixture
def service(raw_config, transports):
    http, ftp = transports
    return UploadService(
        settings=Settings(),
        adapter=InMemoryStateAdapter(),
        orchestrator=UploadOrchestrator(http_transport=http, ftp_transport=ftp),
        raw_config=raw_config,
    )


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

def test_build_orchestrator_from_settings():
    settings = Settings(
        upload_large_file_threshold=1234,
        upload_http_timeout=5.0,
        upload_large_http_timeout=50.0,
        upload_ftp_timeout=7.0,
        upload_stream_chunk_size=64,
        upload_large_file_policy="ftp_only",
    )
    orch = build_orchestrator(settings, event_log=None)
    assert isinstance(orch.http_transport, HttpPutTransport)
    assert isinstance(orch.ftp_transport, FtpTransport)
    assert orch.http_transport.large_file_threshold == 1234
    assert orch.http_transport.timeout == 5.0
    assert orch.http_transport.large_file_timeout == 50.0
    assert orch.http_transport.chunk_size == 64
    assert orch.ftp_transport.timeout == 7.0
    assert orch.large_file_threshold == 1234
    assert orch.large_file_policy.value == "ftp_only"


def test_service_shares_event_log_with_orchestrator(service):
    assert service.orchestrator.event_log is service.event_log


def test_raw_config_from_settings():
    settings = Settings(
        bunny_storage_zone="zone",
        bunny_access_key="key",
        bunny_pull_zone_url="https://zone.b-cdn.net/",
    )
    service = UploadService(settings=settings)
    assert service.get_settings_errors() == []
    assert service.bunny_settings().pull_zone_base_url == "https://zone.b-cdn.net/"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def test_incomplete_config_returns_configuration_failure(raw_config, audio_file, transports):
    http, ftp = transports
    raw_config["storage_zone"] = ""
    service = UploadService(
        settings=Settings(),
        orchestrator=UploadOrchestrator(http_transport=http, ftp_transport=ftp),
        raw_config=raw_config,
    )

    result = service.upload(UploadRequest.from_path(str(audio_file)))

    assert not result.ok
    assert result.kind == CONFIGURATION_ERROR
    assert result.error_code == "missing_settings"
    assert result.missing_fields == ["storage_zone"]
    assert http.calls == [] and ftp.calls == []
    assert service.list_errors()[-1].error_code == "missing_settings"
    with pytest.raises(ConfigurationError):
        result.unwrap()


def test_get_settings_errors_for_other_config(service):
    assert service.get_settings_errors({"storage_zone": "z"}) == [
        MissingField.ACCESS_KEY,
        MissingField.FTP_USERNAME,
        MissingField.FTP_PASSWORD,
        MissingField.PULL_ZONE_BASE_URL,
    ]


def test_settings_resolved_once(service):
    assert service.bunny_settings() is service.bunny_settings()


# ---------------------------------------------------------------------------
# Direct upload
# ---------------------------------------------------------------------------

def test_upload_success(service, audio_file):
    result = service.upload(UploadRequest.from_path(str(audio_file)))
    assert result.unwrap() == "https://zone.b-cdn.net/a.mp3"


def test_upload_request_from_path_uses_file_size(audio_file):
    request = UploadRequest.from_path(str(audio_file), remote_filename="/x/y/b.mp3")
    assert request.size_bytes == audio_file.stat().st_size
    assert request.remote_filename == "b.mp3"


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------

def test_upload_attachment_persists_cdn_url(service, audio_file):
    service.adapter.register("1", str(audio_file))

    result = service.upload_attachment("1")

    assert result.ok
    state = service.adapter.get_state("1")
    assert state.cdn_url == "https://zone.b-cdn.net/a.mp3"
    assert state.upload_time is not None
    assert not state.failed
    assert not state.processing


def test_upload_attachment_failure_marks_failed(service, transports, audio_file):
    http, ftp = transports
    http.error = failing("http")
    ftp.error = failing("ftp")
    service.adapter.register("1", str(audio_file))

    result = service.upload_attachment("1")

    assert not result.ok
    state = service.adapter.get_state("1")
    assert state.failed
    assert state.error.message == "ftp down"
    assert state.error.error_code == "ftp_connect_failed"
    assert state.attempt_time is not None
    assert not state.processing
    assert service.list_errors()[-1].error_code == "upload_failed"
    assert service.adapter.list_failed() == ["1"]


def test_successful_retry_clears_failure(service, transports, audio_file):
    http, ftp = transports
    http.error = failing("http")
    ftp.error = failing("ftp")
    service.adapter.register("1", str(audio_file))
    service.upload_attachment("1")

    http.error = None
    ftp.error = None
    result = service.upload_attachment("1")

    assert result.ok
    state = service.adapter.get_state("1")
    assert not state.failed
    assert state.error is None
    assert service.adapter.list_failed() == []


def test_processing_marker_skips_upload(service, transports, audio_file):
    http, _ = transports
    service.adapter.register("1", str(audio_file))
    service.adapter.set_processing("1", True)

    result = service.upload_attachment("1")

    assert not result.ok
    assert result.kind == UPLOAD_IN_PROGRESS
    assert http.calls == []


def test_stale_processing_marker_from_crash_does_not_block(raw_config, transports, audio_file, tmp_path):
    http, ftp = transports
    path = tmp_path / "state.json"
    path.write_text(json.dumps({
        "attachments": {"7": {"local_path": str(audio_file), "processing": True}},
    }), encoding="utf-8")
    service = UploadService(
        settings=Settings(),
        adapter=JsonSidecarStateAdapter(str(path)),
        orchestrator=UploadOrchestrator(http_transport=http, ftp_transport=ftp),
        raw_config=raw_config,
    )

    summary = service.upload_pending()

    assert summary.succeeded == ["7"]
    assert len(http.calls) == 1


def test_missing_file_marks_failed(service, tmp_path, transports):
    http, _ = transports
    service.adapter.register("1", str(tmp_path / "vanished.mp3"))

    result = service.upload_attachment("1")

    assert not result.ok
    assert result.error_code == "file_not_found"
    assert service.adapter.get_state("1").failed
    assert http.calls == []


def test_unknown_attachment_raises(service):
    with pytest.raises(AttachmentNotFoundError):
        service.upload_attachment("missing")


def test_skip_uploaded(service, transports, audio_file):
    http, _ = transports
    service.adapter.register("1", str(audio_file))
    service.upload_attachment("1")
    assert service.upload_attachment("1", skip_uploaded=True) is None
    assert len(http.calls) == 1


# ---------------------------------------------------------------------------
# Bulk operations
# ---------------------------------------------------------------------------

def test_retry_failed(service, transports, tmp_path):
    http, ftp = transports
    a = tmp_path / "a.mp3"
    b = tmp_path / "b.wav"
    a.write_bytes(b"a")
    b.write_bytes(b"b")
    service.adapter.register("a", str(a))
    service.adapter.register("b", str(b))

    http.error = failing("http")
    ftp.error = failing("ftp")
    service.upload_attachment("a")
    service.upload_attachment("b")

    http.error = None
    summary = service.retry_failed()

    assert sorted(summary.succeeded) == ["a", "b"]
    assert summary.failed == []
    assert service.adapter.list_failed() == []


def test_upload_pending_skips_non_audio_and_uploaded(service, tmp_path):
    files = {"song": "song.mp3", "cover": "cover.jpg", "done": "done.ogg"}
    for ref, name in files.items():
        path = tmp_path / name
        path.write_bytes(b"x")
        service.adapter.register(ref, str(path))
    service.adapter.mark_uploaded("done", "https://zone.b-cdn.net/done.ogg")

    summary = service.upload_pending()

    assert summary.succeeded == ["song"]
    assert summary.skipped == ["cover"]
    assert summary.failed == []


# ---------------------------------------------------------------------------
# Delivery URL / logs
# ---------------------------------------------------------------------------

def test_delivery_url_rewrites_only_uploaded(service, audio_file):
    service.adapter.register("1", str(audio_file))
    origin = "https://example.com/wp-content/uploads/a.mp3"
    assert service.delivery_url("1", origin) == origin

    service.upload_attachment("1")
    assert service.delivery_url("1", origin) == "https://zone.b-cdn.net/a.mp3"
    assert service.delivery_url("unknown", origin) == origin


def test_log_passthrough(service):
    service.event_log.record_error("e", "code")
    service.event_log.record_debug("d")
    assert [e.message for e in service.list_errors()] == ["e"]
    assert [d.message for d in service.list_debug()] == ["d"]
    service.clear_errors()
    service.clear_debug()
    assert service.list_errors() == []
    assert service.list_debug() == []
