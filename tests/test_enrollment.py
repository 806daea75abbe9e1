"""Tests for enrollment takes, profile building and the JSON store."""

from __future__ import annotations

import json

import numpy as np
import pytest

from diarcore.pipeline.diarization.config import EnrollmentConfig
from diarcore.pipeline.diarization.enrollment import (
    EnrollmentSample,
    EnrollmentSampleQuality,
    analyze_enrollment_sample,
    build_enrollment_profile,
    filter_outlier_embeddings,
    speech_mask,
)
from diarcore.pipeline.diarization.models import (
    SpeakerEmbedding,
    SpeakerFeatureVector,
    SpeechRegion,
    VoiceEnrollmentProfile,
)
from diarcore.pipeline.diarization.registry import InMemoryEnrollmentStore, JsonEnrollmentStore
from diarcore.pipeline.errors import EnrollmentError, EnrollmentQualityError
from synth import SR, sine


def _padded(voice: np.ndarray, pad_sec: float) -> np.ndarray:
    rng = np.random.default_rng(0)
    pad = (1e-4 * rng.standard_normal(int(pad_sec * SR))).astype(np.float32)
    return np.concatenate([pad, voice, pad])


def _sample(values, pitch: float, snr: float = 20.0) -> EnrollmentSample:
    quality = EnrollmentSampleQuality(
        snr_db=snr, speech_ratio=0.7, clipping_ratio=0.0, duration_sec=6.0
    )
    centroid = SpeakerFeatureVector(pitch, 10.0, 0.1, 1500.0, 0.01, 0.05)
    return EnrollmentSample(quality=quality, embedding=SpeakerEmbedding(values), centroid=centroid)


def _profile(**overrides) -> VoiceEnrollmentProfile:
    return VoiceEnrollmentProfile(
        reference_embedding=SpeakerEmbedding([0.6, 0.8]),
        reference_centroid=SpeakerFeatureVector(180.0, 12.0, 0.2, 1400.0, 0.01, 0.04),
        **overrides,
    )


def test_speech_mask_clips_regions() -> None:
    mask = speech_mask(10, [SpeechRegion(2, 4), SpeechRegion(8, 20)])

    assert mask.tolist() == [False, False, True, True, False, False, False, False, True, True]
    assert speech_mask(0, [SpeechRegion(0, 5)]).size == 0


def test_empty_take_is_invalid() -> None:
    with pytest.raises(EnrollmentError) as excinfo:
        analyze_enrollment_sample(np.zeros(0, dtype=np.float32), SR)

    assert excinfo.value.reason == "invalid_audio"


def test_silent_take_has_insufficient_speech() -> None:
    with pytest.raises(EnrollmentError) as excinfo:
        analyze_enrollment_sample(np.zeros(6 * SR, dtype=np.float32), SR)

    assert excinfo.value.reason == "insufficient_speech"
    assert not isinstance(excinfo.value, EnrollmentQualityError)


def test_short_take_is_rejected() -> None:
    take = _padded(sine(1.2), 0.4)

    with pytest.raises(EnrollmentQualityError) as excinfo:
        analyze_enrollment_sample(take, SR)

    assert "duration_short" in excinfo.value.reasons
    assert excinfo.value.reason == "low_quality"


def test_clipped_take_is_rejected() -> None:
    take = _padded(sine(4.0, amplitude=1.0), 1.2)

    with pytest.raises(EnrollmentQualityError) as excinfo:
        analyze_enrollment_sample(take, SR)

    assert "clipping_high" in excinfo.value.reasons
    assert "duration_short" not in excinfo.value.reasons


def test_outlier_filter_needs_enough_takes() -> None:
    few = [SpeakerEmbedding([1.0, 0.0])] * 3 + [SpeakerEmbedding([0.0, 1.0])]
    assert filter_outlier_embeddings(few) == few

    many = [SpeakerEmbedding([1.0, 0.01 * i]) for i in range(6)] + [SpeakerEmbedding([0.0, 1.0])]
    kept = filter_outlier_embeddings(many)

    assert len(kept) == 6
    assert SpeakerEmbedding([0.0, 1.0]) not in kept


def test_outlier_filter_drops_a_fraction() -> None:
    cfg = EnrollmentConfig(outlier_min_samples=4, outlier_fraction=0.5)
    items = [SpeakerEmbedding([1.0, 0.0])] * 2 + [SpeakerEmbedding([0.0, 1.0])] * 2

    assert len(filter_outlier_embeddings(items, cfg)) == 2


def test_build_profile_averages_and_versions() -> None:
    store = InMemoryEnrollmentStore()
    takes = [_sample([1.0, 0.0], 100.0, snr=10.0), _sample([0.0, 1.0], 200.0, snr=30.0)]

    first = build_enrollment_profile(takes, store, display_name="Alex")

    assert first.version == 1
    assert first.display_name == "Alex"
    assert first.reference_centroid.mean_pitch == pytest.approx(150.0)
    assert first.reference_embedding.norm == pytest.approx(1.0)
    assert first.quality_stats.accepted_samples == 2
    assert first.quality_stats.average_snr_db == pytest.approx(20.0)
    assert store.load_active_profile() is not None

    second = build_enrollment_profile(takes[:1], store)
    assert second.version == 2


def test_build_profile_without_takes() -> None:
    with pytest.raises(EnrollmentError) as excinfo:
        build_enrollment_profile([], InMemoryEnrollmentStore())

    assert excinfo.value.reason == "insufficient_accepted_samples"


def test_json_store_round_trip(tmp_path) -> None:
    store = JsonEnrollmentStore(tmp_path / "nested" / "me.json")
    assert store.load_active_profile() is None

    original = _profile(version=3, adaptation_count=2, is_active=False)
    store.save_active_profile(original)
    loaded = store.load_active_profile()

    assert loaded is not None
    assert loaded.id == original.id
    assert loaded.version == 3
    assert loaded.adaptation_count == 2
    assert loaded.is_active is True
    assert np.allclose(loaded.reference_embedding.values, [0.6, 0.8])
    assert loaded.reference_centroid == original.reference_centroid
    assert not (tmp_path / "nested" / "me.tmp").exists()

    store.clear()
    assert store.load_active_profile() is None
    store.clear()


def test_json_store_ignores_corrupt_and_inactive_files(tmp_path) -> None:
    path = tmp_path / "me.json"
    store = JsonEnrollmentStore(path)

    path.write_text("{not json", encoding="utf-8")
    assert store.load_active_profile() is None

    path.write_text("[1, 2, 3]", encoding="utf-8")
    assert store.load_active_profile() is None

    payload = _profile().to_dict()
    payload["is_active"] = False
    path.write_text(json.dumps(payload), encoding="utf-8")
    assert store.load_active_profile() is None
