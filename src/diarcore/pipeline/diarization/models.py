"""Value types passed between the diarization stages.

Everything here is a plain dataclass.  Numeric vectors are ``float64`` numpy
arrays; an absent embedding is always ``None`` and every consumer handles
that branch explicitly.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

import numpy as np

_NORM_EPS = 1e-10


def iso_now() -> str:
    return datetime.now(tz=UTC).isoformat(timespec="seconds")


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True, eq=False)
class FeatureFrames:
    """Per-frame MFCC, delta, delta-delta, RMS energy and start time."""

    mfccs: np.ndarray
    deltas: np.ndarray
    delta_deltas: np.ndarray
    rms_energies: np.ndarray
    timestamps: np.ndarray
    sample_rate: int

    @classmethod
    def empty(cls, sample_rate: int, n_mfcc: int = 13) -> FeatureFrames:
        blank = np.zeros((0, n_mfcc), dtype=np.float64)
        return cls(
            mfccs=blank,
            deltas=blank.copy(),
            delta_deltas=blank.copy(),
            rms_energies=np.zeros(0, dtype=np.float64),
            timestamps=np.zeros(0, dtype=np.float64),
            sample_rate=int(sample_rate),
        )

    def __len__(self) -> int:
        return int(self.mfccs.shape[0])

    @property
    def is_empty(self) -> bool:
        return len(self) == 0


@dataclass(frozen=True)
class SpeechRegion:
    start_frame: int
    end_frame: int

    @property
    def frame_count(self) -> int:
        return self.end_frame - self.start_frame


@dataclass(frozen=True)
class Boundary:
    frame_index: int
    bic_delta: float


@dataclass(frozen=True)
class SegmentRange:
    start_frame: int
    end_frame: int

    @property
    def frame_count(self) -> int:
        return self.end_frame - self.start_frame


@dataclass(frozen=True)
class SpeakerSegment:
    start_frame: int
    end_frame: int
    speaker_label: int

    @property
    def frame_count(self) -> int:
        return self.end_frame - self.start_frame


class SpeakerEmbedding:
    """L2-normalised speaker embedding.

    Construction normalises ``values`` unless the norm is degenerate
    (``<= 1e-10``), in which case the vector is kept as-is (all zeros in
    practice).  Cosine similarity is the plain dot product.
    """

    __slots__ = ("values",)

    def __init__(self, values: Iterable[float] | np.ndarray, *, normalize: bool = True):
        arr = np.asarray(values, dtype=np.float64).reshape(-1).copy()
        if normalize:
            norm = float(np.linalg.norm(arr))
            if norm > _NORM_EPS:
                arr = arr / norm
        self.values = arr

    def __len__(self) -> int:
        return int(self.values.size)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SpeakerEmbedding):
            return NotImplemented
        return self.values.shape == other.values.shape and bool(
            np.array_equal(self.values, other.values)
        )

    def __repr__(self) -> str:
        return f"SpeakerEmbedding(dim={self.values.size})"

    @property
    def norm(self) -> float:
        return float(np.linalg.norm(self.values))

    def cosine_similarity(self, other: SpeakerEmbedding) -> float:
        if self.values.size == 0 or self.values.size != other.values.size:
            return 0.0
        return float(np.dot(self.values, other.values))

    def cosine_distance(self, other: SpeakerEmbedding) -> float:
        return 1.0 - self.cosine_similarity(other)

    @classmethod
    def centroid(cls, embeddings: Sequence[SpeakerEmbedding]) -> SpeakerEmbedding | None:
        if not embeddings:
            return None
        dim = embeddings[0].values.size
        if dim == 0:
            return None
        total = np.zeros(dim, dtype=np.float64)
        for emb in embeddings:
            if emb.values.size != dim:
                continue
            total += emb.values
        return cls(total / float(len(embeddings)))

    def to_list(self) -> list[float]:
        return [float(v) for v in self.values]

    @classmethod
    def from_list(cls, values: Sequence[float] | None) -> SpeakerEmbedding | None:
        if values is None:
            return None
        return cls(values, normalize=False)


_LEGACY_DENOMINATORS = np.array([150.0, 50.0, 20.0, 1500.0, 0.05, 0.10])
_LEGACY_WEIGHTS = np.array([2.0, 1.0, 1.5, 1.5, 0.5, 0.5])


@dataclass(frozen=True)
class SpeakerFeatureVector:
    """Six scalar voice statistics used when no embedding is available."""

    mean_pitch: float
    pitch_std_dev: float
    mean_energy: float
    mean_spectral_centroid: float
    mean_jitter: float
    mean_shimmer: float

    @classmethod
    def zero(cls) -> SpeakerFeatureVector:
        return cls(0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    @classmethod
    def from_array(cls, values: Sequence[float] | np.ndarray) -> SpeakerFeatureVector:
        arr = [float(v) for v in np.asarray(values, dtype=np.float64).reshape(-1)[:6]]
        arr.extend([0.0] * (6 - len(arr)))
        return cls(*arr)

    def as_array(self) -> np.ndarray:
        return np.array(
            [
                self.mean_pitch,
                self.pitch_std_dev,
                self.mean_energy,
                self.mean_spectral_centroid,
                self.mean_jitter,
                self.mean_shimmer,
            ],
            dtype=np.float64,
        )

    def distance(self, other: SpeakerFeatureVector) -> float:
        """Weighted normalised Euclidean distance."""

        diff = (self.as_array() - other.as_array()) / _LEGACY_DENOMINATORS
        return float(np.sqrt(np.sum(_LEGACY_WEIGHTS * diff * diff)))

    @classmethod
    def centroid(cls, vectors: Sequence[SpeakerFeatureVector]) -> SpeakerFeatureVector | None:
        if not vectors:
            return None
        stacked = np.vstack([v.as_array() for v in vectors])
        return cls.from_array(stacked.mean(axis=0))

    def to_dict(self) -> dict[str, float]:
        return {
            "mean_pitch": self.mean_pitch,
            "pitch_std_dev": self.pitch_std_dev,
            "mean_energy": self.mean_energy,
            "mean_spectral_centroid": self.mean_spectral_centroid,
            "mean_jitter": self.mean_jitter,
            "mean_shimmer": self.mean_shimmer,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any] | None) -> SpeakerFeatureVector:
        if not payload:
            return cls.zero()
        return cls(**{key: float(payload.get(key, 0.0)) for key in cls.zero().to_dict()})


@dataclass
class SpeakerProfile:
    id: str
    speaker_index: int
    centroid: SpeakerFeatureVector
    sample_count: int
    embedding: SpeakerEmbedding | None = None

    def merging(self, other: SpeakerProfile) -> SpeakerProfile:
        """Sample-count weighted merge of ``other`` into a copy of this profile."""

        total = self.sample_count + other.sample_count
        if total <= 0:
            return self
        w_self = self.sample_count / total
        w_other = other.sample_count / total
        centroid = SpeakerFeatureVector.from_array(
            self.centroid.as_array() * w_self + other.centroid.as_array() * w_other
        )
        if self.embedding is not None and other.embedding is not None:
            if self.embedding.values.size == other.embedding.values.size:
                embedding: SpeakerEmbedding | None = SpeakerEmbedding(
                    self.embedding.values * w_self + other.embedding.values * w_other
                )
            else:
                embedding = self.embedding
        else:
            embedding = self.embedding if self.embedding is not None else other.embedding
        return SpeakerProfile(
            id=self.id,
            speaker_index=self.speaker_index,
            centroid=centroid,
            sample_count=total,
            embedding=embedding,
        )

    def with_index(self, speaker_index: int) -> SpeakerProfile:
        return replace(self, speaker_index=int(speaker_index))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "speaker_index": self.speaker_index,
            "centroid": self.centroid.to_dict(),
            "sample_count": self.sample_count,
            "embedding": self.embedding.to_list() if self.embedding is not None else None,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> SpeakerProfile:
        return cls(
            id=str(payload.get("id") or new_id()),
            speaker_index=int(payload.get("speaker_index", 0)),
            centroid=SpeakerFeatureVector.from_dict(payload.get("centroid")),
            sample_count=int(payload.get("sample_count", 0)),
            embedding=SpeakerEmbedding.from_list(payload.get("embedding")),
        )


@dataclass(frozen=True)
class WordSegmentInfo:
    text: str
    start_sec: float
    duration_sec: float
    confidence: float = 1.0
    pitch: float | None = None

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> WordSegmentInfo:
        pitch = payload.get("pitch")
        return cls(
            text=str(payload.get("text", "")),
            start_sec=float(payload.get("start_sec", payload.get("start", 0.0))),
            duration_sec=float(payload.get("duration_sec", payload.get("duration", 0.0))),
            confidence=float(payload.get("confidence", 1.0)),
            pitch=float(pitch) if pitch is not None else None,
        )


@dataclass(frozen=True)
class DiarizedSegment:
    id: str
    speaker_index: int
    text: str
    start_offset_ms: int
    end_offset_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "speaker_index": self.speaker_index,
            "text": self.text,
            "start_offset_ms": self.start_offset_ms,
            "end_offset_ms": self.end_offset_ms,
        }


@dataclass
class DiarizationResult:
    segments: list[DiarizedSegment] = field(default_factory=list)
    speaker_count: int = 0
    speaker_profiles: list[SpeakerProfile] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "speaker_count": self.speaker_count,
            "segments": [seg.to_dict() for seg in self.segments],
            "speaker_profiles": [p.to_dict() for p in self.speaker_profiles],
        }


AlignmentMap = dict[int, dict[int, int]]


@dataclass
class EnrollmentQualityStats:
    accepted_samples: int = 0
    average_snr_db: float = 0.0
    average_speech_ratio: float = 0.0
    average_clipping_ratio: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "accepted_samples": self.accepted_samples,
            "average_snr_db": self.average_snr_db,
            "average_speech_ratio": self.average_speech_ratio,
            "average_clipping_ratio": self.average_clipping_ratio,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any] | None) -> EnrollmentQualityStats:
        payload = payload or {}
        return cls(
            accepted_samples=int(payload.get("accepted_samples", 0)),
            average_snr_db=float(payload.get("average_snr_db", 0.0)),
            average_speech_ratio=float(payload.get("average_speech_ratio", 0.0)),
            average_clipping_ratio=float(payload.get("average_clipping_ratio", 0.0)),
        )


@dataclass
class VoiceEnrollmentProfile:
    reference_embedding: SpeakerEmbedding
    reference_centroid: SpeakerFeatureVector
    version: int = 1
    adaptation_count: int = 0
    id: str = field(default_factory=new_id)
    display_name: str = "Me"
    is_active: bool = True
    quality_stats: EnrollmentQualityStats = field(default_factory=EnrollmentQualityStats)
    updated_at: str = field(default_factory=iso_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "reference_embedding": self.reference_embedding.to_list(),
            "reference_centroid": self.reference_centroid.to_dict(),
            "version": self.version,
            "is_active": self.is_active,
            "quality_stats": self.quality_stats.to_dict(),
            "adaptation_count": self.adaptation_count,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> VoiceEnrollmentProfile:
        return cls(
            id=str(payload.get("id") or new_id()),
            display_name=str(payload.get("display_name", "Me")),
            reference_embedding=SpeakerEmbedding(
                payload.get("reference_embedding") or [], normalize=False
            ),
            reference_centroid=SpeakerFeatureVector.from_dict(payload.get("reference_centroid")),
            version=int(payload.get("version", 1)),
            is_active=bool(payload.get("is_active", True)),
            quality_stats=EnrollmentQualityStats.from_dict(payload.get("quality_stats")),
            adaptation_count=int(payload.get("adaptation_count", 0)),
            updated_at=str(payload.get("updated_at") or iso_now()),
        )


__all__ = [
    "AlignmentMap",
    "Boundary",
    "DiarizationResult",
    "DiarizedSegment",
    "EnrollmentQualityStats",
    "FeatureFrames",
    "SegmentRange",
    "SpeakerEmbedding",
    "SpeakerFeatureVector",
    "SpeakerProfile",
    "SpeakerSegment",
    "SpeechRegion",
    "VoiceEnrollmentProfile",
    "WordSegmentInfo",
    "iso_now",
    "new_id",
]
