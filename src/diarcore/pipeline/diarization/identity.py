"""Decide which global speaker, if any, is the enrolled user."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace

import numpy as np

from .config import IdentityMatchConfig
from .logger import logger
from .models import (
    SpeakerEmbedding,
    SpeakerFeatureVector,
    SpeakerProfile,
    VoiceEnrollmentProfile,
    iso_now,
)

IDENTITY_ME = "me"
IDENTITY_UNKNOWN = "unknown"

__all__ = [
    "IDENTITY_ME",
    "IDENTITY_UNKNOWN",
    "IdentityMatchResult",
    "match",
    "should_adapt",
    "adapt",
]


@dataclass(frozen=True)
class IdentityMatchResult:
    identity: str
    speaker_index: int | None
    distance: float
    confidence: float
    used_embedding: bool
    decision_reason: str

    @property
    def is_me(self) -> bool:
        return self.identity == IDENTITY_ME

    def to_dict(self) -> dict[str, object]:
        return {
            "identity": self.identity,
            "speaker_index": self.speaker_index,
            "distance": self.distance,
            "confidence": self.confidence,
            "used_embedding": self.used_embedding,
            "decision_reason": self.decision_reason,
        }


def _thresholds(used_embedding: bool, cfg: IdentityMatchConfig) -> tuple[float, float, float]:
    if used_embedding:
        return (
            cfg.embedding_accept_threshold,
            cfg.embedding_review_threshold,
            cfg.embedding_adapt_threshold,
        )
    return cfg.legacy_accept_threshold, cfg.legacy_review_threshold, cfg.legacy_adapt_threshold


def _distance(profile: SpeakerProfile, enrollment: VoiceEnrollmentProfile) -> tuple[float, bool]:
    if profile.embedding is not None and len(enrollment.reference_embedding) > 0:
        return profile.embedding.cosine_distance(enrollment.reference_embedding), True
    return profile.centroid.distance(enrollment.reference_centroid), False


def match(
    profiles: Sequence[SpeakerProfile],
    enrollment: VoiceEnrollmentProfile | None,
    config: IdentityMatchConfig | None = None,
) -> IdentityMatchResult:
    """Find the profile closest to ``enrollment`` and classify the distance."""

    cfg = config or IdentityMatchConfig()
    if not profiles or enrollment is None:
        return IdentityMatchResult(
            identity=IDENTITY_UNKNOWN,
            speaker_index=None,
            distance=float("inf"),
            confidence=0.0,
            used_embedding=False,
            decision_reason="no_candidates",
        )

    best_index = profiles[0].speaker_index
    best_distance = float("inf")
    best_used_embedding = False
    for profile in profiles:
        dist, used_embedding = _distance(profile, enrollment)
        if dist < best_distance:
            best_distance = dist
            best_used_embedding = used_embedding
            best_index = profile.speaker_index

    accept, review, _ = _thresholds(best_used_embedding, cfg)
    scale = max(accept + 0.01, review)
    confidence = float(np.clip(1.0 - best_distance / scale, 0.0, 1.0))

    if best_distance <= accept:
        identity, reason = IDENTITY_ME, "accepted_within_threshold"
    elif best_distance <= review:
        identity, reason = IDENTITY_UNKNOWN, "uncertain_between_accept_and_review"
    else:
        identity, reason = IDENTITY_UNKNOWN, "distance_too_far"

    logger.info(
        "[identity] speaker %s distance=%.3f (%s) -> %s",
        best_index,
        best_distance,
        "embedding" if best_used_embedding else "legacy",
        reason,
    )
    return IdentityMatchResult(
        identity=identity,
        speaker_index=int(best_index),
        distance=float(best_distance),
        confidence=confidence,
        used_embedding=best_used_embedding,
        decision_reason=reason,
    )


def should_adapt(result: IdentityMatchResult, config: IdentityMatchConfig | None = None) -> bool:
    cfg = config or IdentityMatchConfig()
    if not result.is_me:
        return False
    _, _, adapt_threshold = _thresholds(result.used_embedding, cfg)
    return result.distance <= adapt_threshold


def adapt(
    enrollment: VoiceEnrollmentProfile,
    profile: SpeakerProfile,
    alpha: float | None = None,
    config: IdentityMatchConfig | None = None,
) -> VoiceEnrollmentProfile:
    """Blend ``profile`` into ``enrollment`` with an exponential moving average.

    Returns ``enrollment`` itself when the profile has no usable embedding.
    """

    cfg = config or IdentityMatchConfig()
    rate = cfg.adaptation_alpha if alpha is None else float(alpha)
    rate = min(max(rate, cfg.min_alpha), cfg.max_alpha)

    if profile.embedding is None:
        return enrollment
    current = enrollment.reference_embedding.values
    incoming = profile.embedding.values
    if current.size == 0 or current.size != incoming.size:
        return enrollment

    keep = 1.0 - rate
    embedding = SpeakerEmbedding(keep * current + rate * incoming)
    centroid = SpeakerFeatureVector.from_array(
        keep * enrollment.reference_centroid.as_array() + rate * profile.centroid.as_array()
    )
    return replace(
        enrollment,
        reference_embedding=embedding,
        reference_centroid=centroid,
        adaptation_count=enrollment.adaptation_count + 1,
        updated_at=iso_now(),
    )
