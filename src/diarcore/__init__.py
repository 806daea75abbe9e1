"""
diarcore: unsupervised speaker diarization for transcribed audio chunks.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .io.session_manager import ChunkOutcome, ChunkQueue, DiarizationSession
from .pipeline.diarization import (
    DiarizationConfig,
    DiarizationResult,
    SpeakerDiarizer,
    WordSegmentInfo,
)

__all__ = [
    "__version__",
    "ChunkOutcome",
    "ChunkQueue",
    "DiarizationConfig",
    "DiarizationResult",
    "DiarizationSession",
    "SpeakerDiarizer",
    "WordSegmentInfo",
]
