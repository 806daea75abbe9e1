from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np

logger = logging.getLogger(__name__)


def _make_json_safe(obj: Any) -> Any:
    """Recursively convert values into JSON-serialisable types."""
    if isinstance(obj, Path):
        return obj.as_posix()
    if isinstance(obj, np.ndarray):
        return [_make_json_safe(value) for value in obj.tolist()]
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, float) and not np.isfinite(obj):
        return None
    if hasattr(obj, "to_dict") and callable(obj.to_dict):
        return _make_json_safe(obj.to_dict())
    if isinstance(obj, dict):
        return {str(key): _make_json_safe(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [_make_json_safe(value) for value in obj]
    return obj


class JSONLWriter:
    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.write_text("", encoding="utf-8")

    def emit(self, record: dict[str, Any]) -> None:
        try:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(_make_json_safe(record), ensure_ascii=False) + "\n")
        except OSError as exc:
            logger.warning("Could not write to event log %s: %s", self.path, exc)


@dataclass
class SessionStats:
    session_id: str
    chunk_timings_ms: dict[int, float] = field(default_factory=dict)
    fallbacks: dict[int, str] = field(default_factory=dict)
    failures: list[dict[str, Any]] = field(default_factory=list)

    def mark(self, chunk_index: int, elapsed_ms: float, fallback: str | None = None) -> None:
        self.chunk_timings_ms[chunk_index] = self.chunk_timings_ms.get(chunk_index, 0.0) + float(
            elapsed_ms
        )
        if fallback:
            self.fallbacks[chunk_index] = fallback

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "chunk_timings_ms": dict(self.chunk_timings_ms),
            "fallbacks": dict(self.fallbacks),
            "failures": list(self.failures),
        }


class EventLog:
    """Append per-chunk stage events for one session to a JSONL file."""

    def __init__(self, session_id: str, jsonl_path: Path):
        self.session_id = session_id
        self.jsonl = JSONLWriter(jsonl_path)

    def event(self, stage: str, event: str, **fields: Any) -> None:
        record = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime()),
            "session_id": self.session_id,
            "stage": stage,
            "event": event,
        }
        record.update(fields)
        self.jsonl.emit(record)


def _fmt_hms_ms(milliseconds: float) -> str:
    """Return a human readable string with millisecond precision."""

    safe_ms = max(0.0, float(milliseconds))
    seconds = safe_ms / 1000.0
    base_seconds = int(seconds)
    fractional_ms = int(round((seconds - base_seconds) * 1000))

    if fractional_ms == 1000:
        base_seconds += 1
        fractional_ms = 0

    minutes, secs = divmod(base_seconds, 60)
    return f"{minutes:02d}:{secs:02d}.{fractional_ms:03d}"


__all__ = [
    "EventLog",
    "JSONLWriter",
    "SessionStats",
    "_fmt_hms_ms",
    "_make_json_safe",
]
