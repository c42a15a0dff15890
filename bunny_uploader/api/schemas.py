"""
Pydantic schemas for API request / response models.
"""

from pydantic import BaseModel, Field
from typing import Optional


# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------

class UploadFileRequest(BaseModel):
    """Upload a file that is already on the sidecar's local disk."""
    local_path: str = Field(..., description="Absolute path of the file to mirror", min_length=1)
    remote_filename: Optional[str] = Field(
        default=None, description="Remote name; only the basename is used. Defaults to the local basename",
    )


class TransportAttemptSchema(BaseModel):
    transport: str
    kind: str
    error_text: str
    error_code: str = ""
    http_status: Optional[int] = None
    succeeded: bool = False


class UploadResponse(BaseModel):
    """Result of one upload invocation."""
    status: str = Field(..., description="'success' or 'error'")
    cdn_url: Optional[str] = Field(default=None, description="Public pull-zone URL on success")
    transport: Optional[str] = Field(default=None, description="Transport that succeeded")
    kind: Optional[str] = Field(default=None, description="Failure kind when status='error'")
    message: Optional[str] = Field(default=None, description="Last failure message")
    error_code: Optional[str] = Field(default=None, description="Support/debugging code")
    missing_fields: list[str] = Field(default_factory=list)
    attempts: list[TransportAttemptSchema] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------

class AttachmentRegisterRequest(BaseModel):
    ref: str = Field(..., description="Host-side attachment identifier", min_length=1)
    local_path: str = Field(..., min_length=1)


class ErrorRecordSchema(BaseModel):
    timestamp: str = Field(..., description="ISO 8601 UTC timestamp")
    message: str
    error_code: str = ""
    attachment_ref: Optional[str] = None
    filename: Optional[str] = None


class AttachmentResponse(BaseModel):
    ref: str
    local_path: str
    cdn_url: Optional[str] = None
    delivery_url: str = Field(..., description="CDN URL if uploaded, local path otherwise")
    upload_time: Optional[str] = None
    failed: bool = False
    error: Optional[ErrorRecordSchema] = None
    processing: bool = False


class BatchResponse(BaseModel):
    succeeded: list[str]
    failed: list[str]
    skipped: list[str]


# ---------------------------------------------------------------------------
# Settings / logs
# ---------------------------------------------------------------------------

class SettingsErrorsResponse(BaseModel):
    valid: bool
    missing_fields: list[str]


class DebugRecordSchema(BaseModel):
    timestamp: str
    message: str


class ErrorLogResponse(BaseModel):
    capacity: int
    errors: list[ErrorRecordSchema]


class DebugLogResponse(BaseModel):
    capacity: int
    lines: list[DebugRecordSchema]


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "ok"
    service: str = "bunny-uploader"
