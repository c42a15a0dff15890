"""
Utility functions: audio classification.
"""

from .media import AUDIO_MIME_TYPES, audio_mime_type, is_audio

__all__ = [
    "AUDIO_MIME_TYPES",
    "audio_mime_type",
    "is_audio",
]
