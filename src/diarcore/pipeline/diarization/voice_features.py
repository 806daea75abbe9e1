"""Six-feature voice statistics used as the legacy speaker centroid.

Pitch comes from pYIN, energy from frame RMS mapped from [-60 dB, 0 dB] onto
[0, 1], brightness from the spectral centroid of the Hann-windowed frame.
Jitter and shimmer are mean absolute period / energy differences relative to
their means.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Sequence
from dataclasses import dataclass

import librosa
import numpy as np

from .config import DiarizationConfig
from .models import SpeakerFeatureVector

logger = logging.getLogger(__name__)

__all__ = [
    "WindowFeatures",
    "extract_window_features",
    "extract_features_for_windows",
    "to_feature_vector",
]


@dataclass(frozen=True)
class WindowFeatures:
    mean_pitch: float | None = None
    pitch_std_dev: float | None = None
    mean_energy: float | None = None
    mean_spectral_centroid: float | None = None
    jitter: float | None = None
    shimmer: float | None = None

    @property
    def is_complete(self) -> bool:
        return None not in (
            self.mean_pitch,
            self.pitch_std_dev,
            self.mean_energy,
            self.mean_spectral_centroid,
            self.jitter,
            self.shimmer,
        )

    @property
    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (
                self.mean_pitch,
                self.pitch_std_dev,
                self.mean_energy,
                self.mean_spectral_centroid,
                self.jitter,
                self.shimmer,
            )
        )


def _normalized_energy(rms: np.ndarray) -> np.ndarray:
    out = np.zeros_like(rms, dtype=np.float64)
    positive = rms > 0
    if np.any(positive):
        db = 20.0 * np.log10(rms[positive])
        out[positive] = np.clip((db + 60.0) / 60.0, 0.0, 1.0)
    return out


def _voiced_pitches(y: np.ndarray, sr: int, cfg: DiarizationConfig) -> np.ndarray:
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            f0, voiced_flag, _probs = librosa.pyin(
                y,
                fmin=cfg.legacy_min_pitch_hz,
                fmax=cfg.legacy_max_pitch_hz,
                sr=sr,
                frame_length=cfg.legacy_frame_size,
                hop_length=cfg.legacy_frame_hop,
                center=False,
            )
    except Exception as exc:
        logger.debug("pitch estimation failed: %s", exc)
        return np.zeros(0, dtype=np.float64)
    f0 = np.asarray(f0, dtype=np.float64)
    mask = np.asarray(voiced_flag, dtype=bool) & np.isfinite(f0) & (f0 > 0)
    return f0[mask]


def _relative_mean_diff(values: np.ndarray) -> float | None:
    if values.size <= 1:
        return None
    mean = float(np.mean(values))
    if mean <= 0:
        return None
    return float(np.mean(np.abs(np.diff(values)))) / mean


def extract_window_features(
    samples: np.ndarray,
    sample_rate: int,
    config: DiarizationConfig | None = None,
) -> WindowFeatures:
    """Analyse one window of audio; fields are ``None`` when not measurable."""

    cfg = config or DiarizationConfig()
    y = np.asarray(samples, dtype=np.float32).reshape(-1)
    if y.size < cfg.legacy_frame_size or sample_rate <= 0:
        return WindowFeatures()

    rms = librosa.feature.rms(
        y=y, frame_length=cfg.legacy_frame_size, hop_length=cfg.legacy_frame_hop, center=False
    )[0].astype(np.float64)
    energies = _normalized_energy(rms)

    centroids = librosa.feature.spectral_centroid(
        y=y,
        sr=sample_rate,
        n_fft=cfg.legacy_frame_size,
        hop_length=cfg.legacy_frame_hop,
        window="hann",
        center=False,
    )[0].astype(np.float64)
    n = min(centroids.size, rms.size)
    centroids = centroids[:n][(rms[:n] > 0) & (centroids[:n] > 0)]

    pitches = _voiced_pitches(y, int(sample_rate), cfg)
    mean_pitch = float(np.mean(pitches)) if pitches.size else None
    pitch_std = float(np.std(pitches)) if pitches.size > 1 else None
    periods = sample_rate / pitches if pitches.size else pitches

    return WindowFeatures(
        mean_pitch=mean_pitch,
        pitch_std_dev=pitch_std,
        mean_energy=float(np.mean(energies)) if energies.size else None,
        mean_spectral_centroid=float(np.mean(centroids)) if centroids.size else None,
        jitter=_relative_mean_diff(periods),
        shimmer=_relative_mean_diff(energies),
    )


def extract_features_for_windows(
    samples: np.ndarray,
    sample_rate: int,
    windows: Sequence[tuple[float, float]],
    config: DiarizationConfig | None = None,
) -> list[WindowFeatures]:
    """Run :func:`extract_window_features` over ``(start_sec, duration_sec)`` windows."""

    y = np.asarray(samples, dtype=np.float32).reshape(-1)
    out: list[WindowFeatures] = []
    for start_sec, duration_sec in windows:
        start = max(0, int(start_sec * sample_rate))
        stop = min(y.size, start + int(max(duration_sec, 0.03) * sample_rate))
        if start >= y.size or stop <= start:
            out.append(WindowFeatures())
            continue
        out.append(extract_window_features(y[start:stop], sample_rate, config))
    return out


def to_feature_vector(
    features: WindowFeatures,
    *,
    strict: bool = False,
) -> SpeakerFeatureVector | None:
    """Convert window statistics to a :class:`SpeakerFeatureVector`.

    With ``strict`` any missing statistic yields ``None``; otherwise missing
    values are filled with zero.
    """

    if strict and not features.is_complete:
        return None

    def _val(value: float | None) -> float:
        return float(value) if value is not None else 0.0

    return SpeakerFeatureVector(
        mean_pitch=_val(features.mean_pitch),
        pitch_std_dev=_val(features.pitch_std_dev),
        mean_energy=_val(features.mean_energy),
        mean_spectral_centroid=_val(features.mean_spectral_centroid),
        mean_jitter=_val(features.jitter),
        mean_shimmer=_val(features.shimmer),
    )
