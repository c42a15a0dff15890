"""
FastAPI route definitions for the Bunny Uploader sidecar.

- POST   /uploads                       : mirror a local audio file, return CDN URL or failure
- POST   /attachments                   : register an attachment (ref -> local path)
- GET    /attachments/{ref}             : attachment state + delivery URL
- POST   /attachments/{ref}/upload      : (re)upload one attachment
- POST   /attachments/retry-failed      : retry every failed attachment
- POST   /attachments/upload-pending    : upload every audio attachment without a CDN URL
- GET    /settings/errors               : missing Bunny.net settings
- GET / DELETE /logs/errors, /logs/debug: bounded event log

Concurrency:
- Blocking uploads are offloaded to a thread pool via run_in_threadpool.
- Transports enforce their own timeouts; there is no mid-transfer cancellation.
- Per-attachment asyncio.Lock rejects concurrent uploads of the same attachment (409).
"""

import asyncio
import logging

from fastapi import APIRouter, HTTPException
from starlette.concurrency import run_in_threadpool

from .schemas import (
    AttachmentRegisterRequest,
    AttachmentResponse,
    BatchResponse,
    DebugLogResponse,
    DebugRecordSchema,
    ErrorLogResponse,
    ErrorRecordSchema,
    HealthResponse,
    SettingsErrorsResponse,
    TransportAttemptSchema,
    UploadFileRequest,
    UploadResponse,
)
from ..core.errors import AttachmentNotFoundError
from ..core.event_log import ErrorRecord
from ..core.models import UploadRequest, UploadResult
from ..core.service import BatchSummary, UploadService
from ..config import get_settings
from ..state import JsonSidecarStateAdapter
from ..util import is_audio

logger = logging.getLogger(__name__)

router = APIRouter()

# ---------------------------------------------------------------------------
# Singletons (one per process)
# ---------------------------------------------------------------------------

_service: UploadService | None = None

# Per-attachment asyncio locks; must be created and held in async context.
_attachment_locks: dict[str, asyncio.Lock] = {}


def get_service() -> UploadService:
    global _service
    if _service is None:
        settings = get_settings()
        _service = UploadService(
            settings=settings,
            adapter=JsonSidecarStateAdapter(settings.state_file),
        )
    return _service


def _get_lock(ref: str) -> asyncio.Lock:
    """Return (or lazily create) the per-attachment asyncio.Lock."""
    if ref not in _attachment_locks:
        _attachment_locks[ref] = asyncio.Lock()
    return _attachment_locks[ref]


# ---------------------------------------------------------------------------
# Converters
# ---------------------------------------------------------------------------

def _error_schema(record: ErrorRecord) -> ErrorRecordSchema:
    return ErrorRecordSchema(
        timestamp=record.timestamp.isoformat(),
        message=record.message,
        error_code=record.error_code,
        attachment_ref=record.attachment_ref,
        filename=record.filename,
    )


def _upload_response(result: UploadResult) -> UploadResponse:
    attempts = [
        TransportAttemptSchema(
            transport=a.transport,
            kind=a.kind,
            error_text=a.error_text,
            error_code=a.error_code,
            http_status=a.http_status,
            succeeded=a.succeeded,
        )
        for a in result.attempted_transports
    ]
    if result.ok:
        return UploadResponse(
            status="success",
            cdn_url=result.cdn_url,
            transport=result.transport,
            attempts=attempts,
        )
    return UploadResponse(
        status="error",
        kind=result.kind,
        message=result.message,
        error_code=result.error_code,
        missing_fields=result.missing_fields,
        attempts=attempts,
    )


def _batch_response(summary: BatchSummary) -> BatchResponse:
    return BatchResponse(
        succeeded=summary.succeeded,
        failed=summary.failed,
        skipped=summary.skipped,
    )


def _attachment_response(service: UploadService, ref: str) -> AttachmentResponse:
    try:
        state = service.adapter.get_state(ref)
    except AttachmentNotFoundError:
        raise HTTPException(status_code=404, detail="Attachment not found")
    return AttachmentResponse(
        ref=state.ref,
        local_path=state.local_path,
        cdn_url=state.cdn_url,
        delivery_url=service.delivery_url(ref, state.local_path),
        upload_time=state.upload_time.isoformat() if state.upload_time else None,
        failed=state.failed,
        error=_error_schema(state.error) if state.error else None,
        processing=state.processing,
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check():
    """Service health check endpoint."""
    return HealthResponse()


# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------

@router.post("/uploads", response_model=UploadResponse, tags=["upload"])
async def upload_file(request: UploadFileRequest):
    """
    Mirror a local file to Bunny.net.

    Transport failures are reported in the body (status='error') together with
    the full attempt history.

    - HTTP 404 if the local file does not exist.
    - HTTP 415 if the file is not audio.
    - HTTP 422 if no usable remote filename can be derived.
    """
    service = get_service()
    try:
        upload_request = UploadRequest.from_path(request.local_path, request.remote_filename)
    except OSError:
        raise HTTPException(status_code=404, detail=f"File not found: {request.local_path}")
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    if not (is_audio(request.local_path) and is_audio(upload_request.remote_filename)):
        raise HTTPException(
            status_code=415,
            detail=f"Only audio files are mirrored: {upload_request.remote_filename}",
        )

    result = await run_in_threadpool(service.upload, upload_request)
    return _upload_response(result)


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------

@router.post(
    "/attachments",
    response_model=AttachmentResponse,
    tags=["attachment"],
    status_code=201,
)
async def register_attachment(request: AttachmentRegisterRequest):
    """Register an attachment so it can be uploaded / retried by reference."""
    service = get_service()
    register = getattr(service.adapter, "register", None)
    if register is None:
        raise HTTPException(status_code=501, detail="State adapter does not support registration")
    register(request.ref, request.local_path)
    return _attachment_response(service, request.ref)


@router.post("/attachments/retry-failed", response_model=BatchResponse, tags=["attachment"])
async def retry_failed():
    """Run a fresh upload for every attachment currently flagged as failed."""
    summary = await run_in_threadpool(get_service().retry_failed)
    return _batch_response(summary)


@router.post("/attachments/upload-pending", response_model=BatchResponse, tags=["attachment"])
async def upload_pending():
    """Upload every audio attachment that has no CDN URL yet."""
    summary = await run_in_threadpool(get_service().upload_pending)
    return _batch_response(summary)


@router.get("/attachments/{ref}", response_model=AttachmentResponse, tags=["attachment"])
async def get_attachment(ref: str):
    return _attachment_response(get_service(), ref)


@router.post("/attachments/{ref}/upload", response_model=UploadResponse, tags=["attachment"])
async def upload_attachment(ref: str):
    """
    Upload (or retry) a single attachment.

    - HTTP 404 if the attachment is unknown.
    - HTTP 409 if the attachment is already being uploaded by this process.
    """
    service = get_service()

    lock = _get_lock(ref)
    if lock.locked():
        raise HTTPException(
            status_code=409,
            detail="Attachment is already being uploaded. Please wait.",
        )

    async with lock:
        try:
            result = await run_in_threadpool(service.upload_attachment, ref)
        except AttachmentNotFoundError:
            raise HTTPException(status_code=404, detail="Attachment not found")

    return _upload_response(result)


# ---------------------------------------------------------------------------
# Settings / logs
# ---------------------------------------------------------------------------

@router.get("/settings/errors", response_model=SettingsErrorsResponse, tags=["settings"])
async def settings_errors():
    missing = get_service().get_settings_errors()
    return SettingsErrorsResponse(valid=not missing, missing_fields=[m.value for m in missing])


@router.get("/logs/errors", response_model=ErrorLogResponse, tags=["logs"])
async def list_errors():
    service = get_service()
    return ErrorLogResponse(
        capacity=service.event_log.error_capacity,
        errors=[_error_schema(r) for r in service.list_errors()],
    )


@router.delete("/logs/errors", status_code=204, tags=["logs"])
async def clear_errors():
    get_service().clear_errors()


@router.get("/logs/debug", response_model=DebugLogResponse, tags=["logs"])
async def list_debug():
    service = get_service()
    return DebugLogResponse(
        capacity=service.event_log.debug_capacity,
        lines=[
            DebugRecordSchema(timestamp=r.timestamp.isoformat(), message=r.message)
            for r in service.list_debug()
        ],
    )


@router.delete("/logs/debug", status_code=204, tags=["logs"])
async def clear_debug():
    get_service().clear_debug()
