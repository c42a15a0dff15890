"""
Audio file classification.

The upload core is content-agnostic; this is the caller-side filter that
decides which files are mirrored to the CDN.
"""

import os

AUDIO_MIME_TYPES = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "m4a": "audio/mp4",
    "ogg": "audio/ogg",
    "flac": "audio/flac",
}


def audio_mime_type(filename: str) -> str | None:
    """Return the audio MIME type for a filename's extension, or None if not audio."""
    ext = os.path.splitext(filename)[1].lstrip(".").lower()
    return AUDIO_MIME_TYPES.get(ext)


def is_audio(filename: str) -> bool:
    return audio_mime_type(filename) is not None
