"""
Attachment state adapters: the single seam between the uploader and the host.
"""

from .adapter import AttachmentState, AttachmentStateAdapter, InMemoryStateAdapter
from .json_sidecar import JsonSidecarStateAdapter

__all__ = [
    "AttachmentState",
    "AttachmentStateAdapter",
    "InMemoryStateAdapter",
    "JsonSidecarStateAdapter",
]
