from __future__ import annotations

from .alignment import AlignmentResult, align, align_chunk
from .clustering import ClusteringResult, cluster
from .completeness import CompletenessEvaluation, evaluate_completeness
from .config import AlignmentConfig, DiarizationConfig, EnrollmentConfig, IdentityMatchConfig
from .embeddings import compute_embedding
from .enrollment import analyze_enrollment_sample, build_enrollment_profile
from .features import extract_mfcc_features
from .identity import IdentityMatchResult, adapt, match, should_adapt
from .models import (
    AlignmentMap,
    DiarizationResult,
    DiarizedSegment,
    SpeakerEmbedding,
    SpeakerFeatureVector,
    SpeakerProfile,
    VoiceEnrollmentProfile,
    WordSegmentInfo,
)
from .pipeline import SpeakerDiarizer
from .registry import EnrollmentStore, InMemoryEnrollmentStore, JsonEnrollmentStore
from .segments import smooth
from .vad import detect_speech_regions
from .words import map_words

__all__ = [
    "AlignmentConfig",
    "AlignmentMap",
    "AlignmentResult",
    "ClusteringResult",
    "CompletenessEvaluation",
    "DiarizationConfig",
    "DiarizationResult",
    "DiarizedSegment",
    "EnrollmentConfig",
    "EnrollmentStore",
    "IdentityMatchConfig",
    "IdentityMatchResult",
    "InMemoryEnrollmentStore",
    "JsonEnrollmentStore",
    "SpeakerDiarizer",
    "SpeakerEmbedding",
    "SpeakerFeatureVector",
    "SpeakerProfile",
    "VoiceEnrollmentProfile",
    "WordSegmentInfo",
    "adapt",
    "align",
    "align_chunk",
    "analyze_enrollment_sample",
    "build_enrollment_profile",
    "cluster",
    "compute_embedding",
    "detect_speech_regions",
    "evaluate_completeness",
    "extract_mfcc_features",
    "map_words",
    "match",
    "should_adapt",
    "smooth",
]
