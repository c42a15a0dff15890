"""
JSON-file backed attachment state.

Layout:
    {"attachments": {"<ref>": {"local_path": ..., "cdn_url": ..., ...}}}

Writes go to a temp file in the same directory followed by os.replace(), so
readers never observe a half-written file.

The processing marker belongs to the running process and is never written;
a file left behind by a crashed upload reloads with it cleared.
"""

import json
import logging
import os
import tempfile
from dataclasses import asdict
from datetime import datetime

from ..core.event_log import ErrorRecord
from .adapter import AttachmentState, InMemoryStateAdapter

logger = logging.getLogger(__name__)

_DATETIME_FIELDS = ("upload_time", "error_time", "attempt_time")


def _dt_out(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _dt_in(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _state_to_dict(state: AttachmentState) -> dict:
    data = {
        "local_path": state.local_path,
        "cdn_url": state.cdn_url,
        "failed": state.failed,
        "error": None,
    }
    for name in _DATETIME_FIELDS:
        data[name] = _dt_out(getattr(state, name))
    if state.error is not None:
        error = asdict(state.error)
        error["timestamp"] = _dt_out(state.error.timestamp)
        data["error"] = error
    return data


def _state_from_dict(ref: str, data: dict) -> AttachmentState:
    error = None
    if data.get("error"):
        raw = dict(data["error"])
        raw["timestamp"] = _dt_in(raw.get("timestamp"))
        if raw["timestamp"] is None:
            raw.pop("timestamp")
        error = ErrorRecord(**raw)
    return AttachmentState(
        ref=ref,
        local_path=data["local_path"],
        cdn_url=data.get("cdn_url"),
        upload_time=_dt_in(data.get("upload_time")),
        failed=bool(data.get("failed")),
        error=error,
        error_time=_dt_in(data.get("error_time")),
        attempt_time=_dt_in(data.get("attempt_time")),
    )


class JsonSidecarStateAdapter(InMemoryStateAdapter):
    """InMemoryStateAdapter that mirrors every mutation to a JSON file."""

    def __init__(self, path: str):
        super().__init__()
        self.path = path
        self._load()

    def _load(self) -> None:
        if not os.path.exists(self.path):
            return
        with open(self.path, "r", encoding="utf-8") as f:
            payload = json.load(f)
        for ref, data in payload.get("attachments", {}).items():
            self._states[ref] = _state_from_dict(ref, data)
        logger.info("Loaded %d attachment(s) from %s", len(self._states), self.path)

    def _commit(self) -> None:
        payload = {
            "attachments": {ref: _state_to_dict(s) for ref, s in self._states.items()},
        }
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".state-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
