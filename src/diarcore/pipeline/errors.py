"""Error types shared by the diarcore pipeline and its outer surfaces.

The diarization core itself never lets these escape: every stage degrades to
a documented fallback instead.  They exist for the collaborators around the
core (audio reading, enrollment, configuration, CLI) which need to report a
failure with enough context for the caller to render an actionable message.
"""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass, field
from typing import Any

__all__ = [
    "PipelineError",
    "StageExecutionError",
    "AudioReadError",
    "ConfigurationError",
    "EnrollmentError",
    "EnrollmentQualityError",
    "attach_context",
    "coerce_stage_error",
    "enrollment_error",
    "enrollment_quality_error",
]


@dataclass(slots=True)
class PipelineError(RuntimeError):
    """Base class for diarcore failures.

    Attributes
    ----------
    message:
        Human readable description of the failure.
    stage:
        Optional stage identifier (``None`` for configuration level issues).
    context:
        JSON serialisable dictionary with granular diagnostics.
    cause:
        Underlying exception (kept for debugging, not included in ``__str__``).
    """

    message: str
    stage: str | None = None
    context: MutableMapping[str, Any] = field(default_factory=dict)
    cause: Exception | None = None

    def __post_init__(self) -> None:  # pragma: no cover - defensive programming
        if self.context is None:
            self.context = {}

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class StageExecutionError(PipelineError):
    """Error raised when a specific stage fails to execute."""


class AudioReadError(StageExecutionError):
    """Raised when an audio source cannot be decoded into samples."""


class ConfigurationError(PipelineError):
    """Raised when configuration validation fails."""


class EnrollmentError(PipelineError):
    """Raised when an enrollment sample or profile cannot be built.

    ``reason`` is a stable machine readable code (``insufficient_speech``,
    ``embedding_unavailable``, ``insufficient_accepted_samples`` ...).
    """

    @property
    def reason(self) -> str:
        return str(self.context.get("reason", "unknown"))


class EnrollmentQualityError(EnrollmentError):
    """Raised when a recorded enrollment sample fails the quality gate."""

    @property
    def reasons(self) -> list[str]:
        return list(self.context.get("reasons", []))


def enrollment_error(reason: str, message: str | None = None) -> EnrollmentError:
    return EnrollmentError(
        message=message or reason.replace("_", " "),
        stage="enrollment",
        context={"reason": reason},
    )


def enrollment_quality_error(reasons: Sequence[str]) -> EnrollmentQualityError:
    return EnrollmentQualityError(
        message="enrollment sample rejected: " + ", ".join(reasons),
        stage="enrollment",
        context={"reason": "low_quality", "reasons": list(reasons)},
    )


def attach_context(
    error: PipelineError,
    context: Mapping[str, Any] | None,
) -> PipelineError:
    """Merge ``context`` into ``error.context`` preserving existing keys."""

    if not context:
        return error
    for key, value in context.items():
        error.context.setdefault(key, value)
    return error


def coerce_stage_error(
    stage: str,
    message: str,
    *,
    context: Mapping[str, Any] | None = None,
    cause: Exception | None = None,
) -> StageExecutionError:
    """Create :class:`StageExecutionError` with a rich context payload."""

    payload: MutableMapping[str, Any] = {}
    if context:
        payload.update(context)
    if cause:
        payload.setdefault("cause", repr(cause))
    return StageExecutionError(message=message, stage=stage, context=payload, cause=cause)
