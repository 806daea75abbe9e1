"""Session-level state and chunk scheduling."""

from __future__ import annotations

from .session_manager import ChunkJob, ChunkOutcome, ChunkQueue, DiarizationSession, JobStatus

__all__ = ["ChunkJob", "ChunkOutcome", "ChunkQueue", "DiarizationSession", "JobStatus"]
