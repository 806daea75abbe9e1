"""Voice enrollment: vet recorded takes and fold them into a reference profile.

Each take is checked for duration, signal-to-noise ratio, speech ratio and
clipping before its embedding is trusted.  Accepted takes are combined by
:func:`build_enrollment_profile`, which drops outliers once enough takes are
available and persists the result through an :class:`EnrollmentStore`.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

from ..errors import enrollment_error, enrollment_quality_error
from ..preprocess.io import resample_linear
from . import vad
from .config import DiarizationConfig, EnrollmentConfig
from .embeddings import compute_embedding
from .features import extract_mfcc_features
from .logger import logger
from .models import (
    EnrollmentQualityStats,
    SpeakerEmbedding,
    SpeakerFeatureVector,
    SpeechRegion,
    VoiceEnrollmentProfile,
)
from .registry import EnrollmentStore
from .voice_features import extract_window_features, to_feature_vector

__all__ = [
    "EnrollmentSampleQuality",
    "EnrollmentSample",
    "speech_mask",
    "analyze_enrollment_sample",
    "filter_outlier_embeddings",
    "build_enrollment_profile",
]


@dataclass(frozen=True)
class EnrollmentSampleQuality:
    snr_db: float
    speech_ratio: float
    clipping_ratio: float
    duration_sec: float
    accepted: bool = True
    rejection_reasons: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "snr_db": self.snr_db,
            "speech_ratio": self.speech_ratio,
            "clipping_ratio": self.clipping_ratio,
            "duration_sec": self.duration_sec,
            "accepted": self.accepted,
            "rejection_reasons": list(self.rejection_reasons),
        }


@dataclass(frozen=True)
class EnrollmentSample:
    quality: EnrollmentSampleQuality
    embedding: SpeakerEmbedding
    centroid: SpeakerFeatureVector


def speech_mask(total_frames: int, regions: Sequence[SpeechRegion]) -> np.ndarray:
    """Boolean per-frame mask with ``True`` inside any speech region."""

    mask = np.zeros(max(0, int(total_frames)), dtype=bool)
    if total_frames <= 0:
        return mask
    for region in regions:
        start = max(0, min(total_frames - 1, region.start_frame))
        end = max(start, min(total_frames, region.end_frame))
        mask[start:end] = True
    return mask


def _rejection_reasons(
    duration_sec: float,
    snr_db: float,
    speech_ratio: float,
    clipping_ratio: float,
    cfg: EnrollmentConfig,
) -> list[str]:
    reasons: list[str] = []
    if duration_sec < cfg.min_duration_sec:
        reasons.append("duration_short")
    if duration_sec > cfg.max_duration_sec:
        reasons.append("duration_long")
    if snr_db < cfg.min_snr_db:
        reasons.append("snr_low")
    if speech_ratio < cfg.min_speech_ratio:
        reasons.append("speech_ratio_low")
    if speech_ratio > cfg.max_speech_ratio:
        reasons.append("speech_ratio_high")
    if clipping_ratio > cfg.max_clipping_ratio:
        reasons.append("clipping_high")
    return reasons


def analyze_enrollment_sample(
    samples: np.ndarray,
    sample_rate: int,
    config: EnrollmentConfig | None = None,
    diarization_config: DiarizationConfig | None = None,
) -> EnrollmentSample:
    """Measure one recorded take and extract its embedding and voice centroid.

    Raises :class:`~diarcore.pipeline.errors.EnrollmentQualityError` listing
    every failed check, or :class:`~diarcore.pipeline.errors.EnrollmentError`
    when there is too little speech or no usable features.
    """

    cfg = config or EnrollmentConfig()
    dcfg = diarization_config or DiarizationConfig()
    y = np.asarray(samples, dtype=np.float32).reshape(-1)
    if y.size == 0 or sample_rate <= 0:
        raise enrollment_error("invalid_audio", "enrollment take is empty")

    canonical = resample_linear(y, sample_rate, dcfg.target_sr, dcfg.resample_tolerance_hz)
    frames = extract_mfcc_features(canonical, dcfg.target_sr, dcfg)
    if frames.is_empty:
        raise enrollment_error("insufficient_speech")

    regions = vad.detect_speech_regions(frames.rms_energies, dcfg)
    mask = speech_mask(len(frames), regions)
    speech_frames = int(mask.sum())
    if speech_frames < cfg.min_speech_frames:
        raise enrollment_error("insufficient_speech")

    energies = frames.rms_energies
    speech_ratio = speech_frames / float(max(1, mask.size))
    speech_mean = float(energies[mask].mean()) if speech_frames else 0.0
    noise_mean = float(energies[~mask].mean()) if (~mask).any() else 0.0
    snr_db = 20.0 * float(np.log10(max(speech_mean, 1e-6) / max(noise_mean, 1e-6)))
    clipping_ratio = float(np.count_nonzero(np.abs(y) >= cfg.clipping_level)) / float(y.size)
    duration_sec = y.size / float(sample_rate)

    reasons = _rejection_reasons(duration_sec, snr_db, speech_ratio, clipping_ratio, cfg)
    if reasons:
        logger.info("[enroll] take rejected: %s", ", ".join(reasons))
        raise enrollment_quality_error(reasons)

    embedding = compute_embedding(frames.mfccs, frames.deltas, frames.delta_deltas)
    if embedding is None:
        raise enrollment_error("embedding_unavailable")
    centroid = to_feature_vector(extract_window_features(y, int(sample_rate), dcfg), strict=True)
    if centroid is None:
        raise enrollment_error("embedding_unavailable")

    quality = EnrollmentSampleQuality(
        snr_db=snr_db,
        speech_ratio=speech_ratio,
        clipping_ratio=clipping_ratio,
        duration_sec=duration_sec,
    )
    return EnrollmentSample(quality=quality, embedding=embedding, centroid=centroid)


def filter_outlier_embeddings(
    embeddings: Sequence[SpeakerEmbedding],
    config: EnrollmentConfig | None = None,
) -> list[SpeakerEmbedding]:
    """Drop the takes farthest from the centroid once there are enough of them."""

    cfg = config or EnrollmentConfig()
    items = list(embeddings)
    if len(items) < cfg.outlier_min_samples:
        return items
    center = SpeakerEmbedding.centroid(items)
    if center is None:
        return items
    remove_count = max(1, int(len(items) * cfg.outlier_fraction))
    order = sorted(
        range(len(items)), key=lambda idx: items[idx].cosine_distance(center), reverse=True
    )
    dropped = set(order[:remove_count])
    kept = [emb for idx, emb in enumerate(items) if idx not in dropped]
    return kept or items


def build_enrollment_profile(
    samples: Sequence[EnrollmentSample],
    store: EnrollmentStore,
    display_name: str = "Me",
    config: EnrollmentConfig | None = None,
) -> VoiceEnrollmentProfile:
    """Combine accepted takes into the new active enrollment profile."""

    if not samples:
        raise enrollment_error("insufficient_accepted_samples")

    embeddings = filter_outlier_embeddings([s.embedding for s in samples], config)
    reference_embedding = SpeakerEmbedding.centroid(embeddings)
    reference_centroid = SpeakerFeatureVector.centroid([s.centroid for s in samples])
    if reference_embedding is None or reference_centroid is None:
        raise enrollment_error("embedding_unavailable")

    count = len(samples)
    stats = EnrollmentQualityStats(
        accepted_samples=count,
        average_snr_db=sum(s.quality.snr_db for s in samples) / count,
        average_speech_ratio=sum(s.quality.speech_ratio for s in samples) / count,
        average_clipping_ratio=sum(s.quality.clipping_ratio for s in samples) / count,
    )
    previous = store.load_active_profile()
    version = max(1, (previous.version if previous is not None else 0) + 1)

    profile = VoiceEnrollmentProfile(
        reference_embedding=reference_embedding,
        reference_centroid=reference_centroid,
        version=version,
        display_name=display_name,
        quality_stats=stats,
    )
    store.save_active_profile(profile)
    logger.info(
        "[enroll] saved profile v%d from %d takes (%d kept after outlier filter)",
        version,
        count,
        len(embeddings),
    )
    return profile
