from __future__ import annotations

from .errors import (
    AudioReadError,
    ConfigurationError,
    EnrollmentError,
    EnrollmentQualityError,
    PipelineError,
    StageExecutionError,
)

__all__ = [
    "AudioReadError",
    "ConfigurationError",
    "EnrollmentError",
    "EnrollmentQualityError",
    "PipelineError",
    "StageExecutionError",
]
