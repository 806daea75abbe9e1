"""Long-lived diarization state for one recording session.

:class:`DiarizationSession` keeps the global speaker registry, the chunk
alignment map and the enrolled-user identity consistent while chunks arrive.
:class:`ChunkQueue` feeds chunks to it one at a time and can be paused while
recording is active.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import numpy as np

from ..pipeline.diarization.alignment import align_chunk
from ..pipeline.diarization.config import AlignmentConfig, IdentityMatchConfig
from ..pipeline.diarization.identity import IdentityMatchResult, adapt, match, should_adapt
from ..pipeline.diarization.models import (
    AlignmentMap,
    DiarizationResult,
    DiarizedSegment,
    SpeakerProfile,
    WordSegmentInfo,
    new_id,
)
from ..pipeline.diarization.pipeline import SpeakerDiarizer
from ..pipeline.diarization.registry import EnrollmentStore
from ..pipeline.logging_utils import EventLog, SessionStats, _fmt_hms_ms

logger = logging.getLogger(__name__)


@dataclass
class ChunkOutcome:
    chunk_index: int
    result: DiarizationResult
    global_indices: dict[int, int] = field(default_factory=dict)
    identity: IdentityMatchResult | None = None

    def global_segments(self) -> list[DiarizedSegment]:
        """Segments relabelled with session-wide speaker indices."""

        return [
            DiarizedSegment(
                id=seg.id,
                speaker_index=self.global_indices.get(seg.speaker_index, seg.speaker_index),
                text=seg.text,
                start_offset_ms=seg.start_offset_ms,
                end_offset_ms=seg.end_offset_ms,
            )
            for seg in self.result.segments
        ]

    def to_dict(self) -> dict[str, object]:
        return {
            "chunk_index": self.chunk_index,
            "speaker_count": self.result.speaker_count,
            "global_indices": {str(k): v for k, v in sorted(self.global_indices.items())},
            "segments": [seg.to_dict() for seg in self.global_segments()],
            "identity": self.identity.to_dict() if self.identity is not None else None,
        }


class DiarizationSession:
    """Serialise alignment and identity updates across chunks."""

    def __init__(
        self,
        diarizer: SpeakerDiarizer | None = None,
        enrollment_store: EnrollmentStore | None = None,
        alignment_config: AlignmentConfig | None = None,
        identity_config: IdentityMatchConfig | None = None,
        event_log: EventLog | None = None,
        session_id: str | None = None,
    ):
        self.session_id = session_id or new_id()
        self.diarizer = diarizer or SpeakerDiarizer()
        self.enrollment_store = enrollment_store
        self.alignment_config = alignment_config or AlignmentConfig()
        self.identity_config = identity_config or IdentityMatchConfig()
        self.event_log = event_log
        self.stats = SessionStats(session_id=self.session_id)
        self._lock = threading.RLock()
        self._global_profiles: list[SpeakerProfile] = []
        self._alignment_map: AlignmentMap = {}

    @property
    def global_profiles(self) -> list[SpeakerProfile]:
        with self._lock:
            return list(self._global_profiles)

    @property
    def alignment_map(self) -> AlignmentMap:
        with self._lock:
            return {k: dict(v) for k, v in self._alignment_map.items()}

    def reset(self) -> None:
        with self._lock:
            self._global_profiles = []
            self._alignment_map = {}

    def _emit(self, stage: str, event: str, **fields: object) -> None:
        if self.event_log is not None:
            self.event_log.event(stage, event, **fields)

    def process_chunk(
        self,
        chunk_index: int,
        audio_path: str | Path,
        words: Sequence[WordSegmentInfo],
    ) -> ChunkOutcome:
        start = time.time()
        self._emit("diarize", "start", chunk_index=chunk_index, path=str(audio_path))
        result = self.diarizer.diarize(audio_path, words)
        return self._commit(chunk_index, result, start)

    def process_samples(
        self,
        chunk_index: int,
        samples: np.ndarray,
        sample_rate: int,
        words: Sequence[WordSegmentInfo],
    ) -> ChunkOutcome:
        start = time.time()
        self._emit("diarize", "start", chunk_index=chunk_index)
        result = self.diarizer.diarize_samples(samples, sample_rate, words)
        return self._commit(chunk_index, result, start)

    def _commit(self, chunk_index: int, result: DiarizationResult, start: float) -> ChunkOutcome:
        debug = self.diarizer.get_debug_payload()
        with self._lock:
            aligned = align_chunk(
                chunk_index,
                result.speaker_profiles,
                self._global_profiles,
                self._alignment_map,
                self.alignment_config,
            )
            # A failing store save leaves the registry untouched.
            identity = self._identify(aligned.global_profiles)
            self._global_profiles, self._alignment_map = (
                aligned.global_profiles,
                aligned.alignment_map,
            )

        outcome = ChunkOutcome(
            chunk_index=chunk_index,
            result=result,
            global_indices=dict(aligned.alignment_map.get(chunk_index, {})),
            identity=identity,
        )
        elapsed_ms = max(0.0, (time.time() - start) * 1000.0)
        self.stats.mark(chunk_index, elapsed_ms, debug.get("fallback_reason"))
        self._emit(
            "diarize",
            "stop",
            chunk_index=chunk_index,
            elapsed_ms=elapsed_ms,
            speaker_count=result.speaker_count,
            fallback_reason=debug.get("fallback_reason"),
            global_indices=outcome.global_indices,
        )
        logger.info(
            "Chunk %d committed in %s: %d local speakers, %d global speakers",
            chunk_index,
            _fmt_hms_ms(elapsed_ms),
            result.speaker_count,
            len(aligned.global_profiles),
        )
        return outcome

    def _identify(self, profiles: list[SpeakerProfile]) -> IdentityMatchResult | None:
        if self.enrollment_store is None:
            return None
        enrollment = self.enrollment_store.load_active_profile()
        if enrollment is None:
            return None
        result = match(profiles, enrollment, self.identity_config)
        if should_adapt(result, self.identity_config):
            profile = next(
                (p for p in profiles if p.speaker_index == result.speaker_index),
                None,
            )
            if profile is not None:
                adapted = adapt(enrollment, profile, config=self.identity_config)
                if adapted is not enrollment:
                    self.enrollment_store.save_active_profile(adapted)
                    self._emit(
                        "identity",
                        "adapted",
                        speaker_index=result.speaker_index,
                        adaptation_count=adapted.adaptation_count,
                    )
        return result


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class ChunkJob:
    chunk_index: int
    audio_path: Path
    words: list[WordSegmentInfo]
    chunk_id: str = field(default_factory=new_id)
    status: JobStatus = JobStatus.PENDING
    error: str | None = None
    outcome: ChunkOutcome | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "chunk_id": self.chunk_id,
            "chunk_index": self.chunk_index,
            "audio_path": str(self.audio_path),
            "status": self.status.value,
            "error": self.error,
        }


class ChunkQueue:
    """Process chunk jobs one at a time, in submission order."""

    def __init__(self, processor: Callable[[ChunkJob], ChunkOutcome]):
        self._processor = processor
        self._lock = threading.Lock()
        self._pending: deque[ChunkJob] = deque()
        self._draining = False
        self._deferred = False

    @classmethod
    def for_session(cls, session: DiarizationSession) -> ChunkQueue:
        return cls(lambda job: session.process_chunk(job.chunk_index, job.audio_path, job.words))

    @property
    def deferred(self) -> bool:
        return self._deferred

    def pending(self) -> list[ChunkJob]:
        with self._lock:
            return list(self._pending)

    def enqueue(self, job: ChunkJob) -> ChunkJob:
        with self._lock:
            job.status = JobStatus.PENDING
            self._pending.append(job)
        logger.info("Queued chunk %d (%s)", job.chunk_index, job.chunk_id)
        return job

    def cancel_job(self, chunk_id: str) -> bool:
        with self._lock:
            for job in self._pending:
                if job.chunk_id == chunk_id:
                    self._pending.remove(job)
                    job.status = JobStatus.CANCELLED
                    return True
        return False

    def cancel_all(self) -> int:
        with self._lock:
            cancelled = list(self._pending)
            self._pending.clear()
        for job in cancelled:
            job.status = JobStatus.CANCELLED
        return len(cancelled)

    def set_deferred(self, deferred: bool) -> int:
        """Pause or resume processing; resuming drains what is pending."""

        self._deferred = bool(deferred)
        if self._deferred:
            return 0
        return self.drain()

    def drain(self) -> int:
        """Run pending jobs until the queue is empty or deferred.

        Returns the number of jobs processed.  A call made while another
        drain is in flight returns 0 immediately.
        """

        with self._lock:
            if self._draining:
                return 0
            self._draining = True
        processed = 0
        try:
            while True:
                with self._lock:
                    if self._deferred or not self._pending:
                        break
                    job = self._pending.popleft()
                    job.status = JobStatus.RUNNING
                try:
                    job.outcome = self._processor(job)
                    job.status = JobStatus.DONE
                except Exception as exc:
                    job.status = JobStatus.FAILED
                    job.error = str(exc)
                    logger.error("Chunk %d failed: %s", job.chunk_index, exc)
                processed += 1
        finally:
            with self._lock:
                self._draining = False
        return processed


__all__ = [
    "ChunkJob",
    "ChunkOutcome",
    "ChunkQueue",
    "DiarizationSession",
    "JobStatus",
]
