from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path
from typing import Protocol

from .logger import logger
from .models import VoiceEnrollmentProfile


class EnrollmentStore(Protocol):
    def load_active_profile(self) -> VoiceEnrollmentProfile | None: ...

    def save_active_profile(self, profile: VoiceEnrollmentProfile) -> None: ...

    def clear(self) -> None: ...


class JsonEnrollmentStore:
    """Keep the active enrollment profile in a single JSON file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load_active_profile(self) -> VoiceEnrollmentProfile | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Enrollment load failed: %s", exc)
            return None
        if not isinstance(data, dict):
            logger.warning("Enrollment load expected a JSON object at %s", self.path)
            return None
        try:
            profile = VoiceEnrollmentProfile.from_dict(data)
        except (TypeError, ValueError) as exc:
            logger.warning("Enrollment payload invalid at %s: %s", self.path, exc)
            return None
        return profile if profile.is_active else None

    def save_active_profile(self, profile: VoiceEnrollmentProfile) -> None:
        payload = replace(profile, is_active=True).to_dict()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(".tmp")
        try:
            temp_path.write_text(
                json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8"
            )
            temp_path.replace(self.path)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class InMemoryEnrollmentStore:
    def __init__(self, profile: VoiceEnrollmentProfile | None = None):
        self._profile = profile

    def load_active_profile(self) -> VoiceEnrollmentProfile | None:
        return self._profile

    def save_active_profile(self, profile: VoiceEnrollmentProfile) -> None:
        self._profile = replace(profile, is_active=True)

    def clear(self) -> None:
        self._profile = None


__all__ = ["EnrollmentStore", "JsonEnrollmentStore", "InMemoryEnrollmentStore"]
