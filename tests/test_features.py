"""Tests for the MFCC front end."""

from __future__ import annotations

import numpy as np
import pytest

from diarcore.pipeline.diarization.config import DiarizationConfig
from diarcore.pipeline.diarization.features import (
    compute_deltas,
    extract_mfcc_features,
    mel_filterbank,
    pre_emphasize,
)


def test_frame_layout_for_one_second() -> None:
    rng = np.random.default_rng(0)
    samples = 0.1 * rng.standard_normal(16000).astype(np.float32)

    frames = extract_mfcc_features(samples, 16000)

    expected = 1 + (16000 - 400) // 160
    assert len(frames) == expected
    assert frames.mfccs.shape == (expected, 13)
    assert frames.deltas.shape == frames.mfccs.shape
    assert frames.delta_deltas.shape == frames.mfccs.shape
    assert frames.rms_energies.shape == (expected,)
    assert frames.timestamps[1] == pytest.approx(0.01)
    assert np.all(np.isfinite(frames.mfccs))


def test_too_short_input_yields_empty_frames() -> None:
    frames = extract_mfcc_features(np.zeros(399, dtype=np.float32), 16000)

    assert frames.is_empty
    assert frames.mfccs.shape == (0, 13)


def test_silence_hits_log_floor() -> None:
    frames = extract_mfcc_features(np.zeros(1600, dtype=np.float32), 16000)

    # c0 is the sum of the 26 floored log energies.
    assert frames.mfccs[0, 0] == pytest.approx(26 * np.log(1e-10))
    assert np.allclose(frames.mfccs[:, 1:], 0.0, atol=1e-6)
    assert np.allclose(frames.rms_energies, 0.0)


def test_pre_emphasis_keeps_first_sample() -> None:
    out = pre_emphasize(np.array([1.0, 1.0, 2.0]), 0.97)

    assert out.tolist() == pytest.approx([1.0, 0.03, 1.03])


def test_filterbank_rows_peak_at_one() -> None:
    fb = mel_filterbank(16000, 512, 26)

    assert fb.shape == (26, 257)
    assert np.allclose(fb.max(axis=1), 1.0)
    assert np.all(fb >= 0.0)


def test_deltas_of_a_ramp_are_one_inside() -> None:
    ramp = np.repeat(np.arange(20, dtype=np.float64)[:, None], 3, axis=1)

    deltas = compute_deltas(ramp, width=2)

    assert deltas.shape == ramp.shape
    assert np.allclose(deltas[2:-2], 1.0)
    # Clamped edges flatten the slope at the ends.
    assert deltas[0, 0] < 1.0
    assert deltas[-1, 0] < 1.0


def test_config_validation_rejects_bad_sizes() -> None:
    from diarcore.pipeline.errors import ConfigurationError

    with pytest.raises(ConfigurationError) as excinfo:
        DiarizationConfig(frame_hop=0).validate()
    assert "frame_hop" in excinfo.value.context["invalid_fields"]
