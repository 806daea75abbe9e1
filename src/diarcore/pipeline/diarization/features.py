"""MFCC front end for the unsupervised diarizer.

Frames are 25 ms long with a 10 ms hop at 16 kHz.  Each frame goes through
pre-emphasis, a periodic Hamming window, a 512-point power spectrum, a
26-band HTK-style Mel filterbank, a log floor and an unscaled DCT-II that
keeps the first 13 coefficients.  Deltas use the regression formula over a
+/-2 frame window with clamped edges; delta-deltas are deltas of deltas.
"""

from __future__ import annotations

from functools import lru_cache

import librosa
import numpy as np
import scipy.fft
import scipy.signal

from .config import DiarizationConfig
from .models import FeatureFrames

__all__ = [
    "mel_filterbank",
    "pre_emphasize",
    "compute_deltas",
    "extract_mfcc_features",
]


def pre_emphasize(samples: np.ndarray, coefficient: float = 0.97) -> np.ndarray:
    x = np.asarray(samples, dtype=np.float64).reshape(-1)
    if x.size == 0:
        return x
    y = np.empty_like(x)
    y[0] = x[0]
    y[1:] = x[1:] - coefficient * x[:-1]
    return y


@lru_cache(maxsize=8)
def mel_filterbank(sample_rate: int, fft_size: int, n_mels: int) -> np.ndarray:
    """Return an ``(n_mels, fft_size // 2 + 1)`` triangular filterbank.

    Filter edges are spaced linearly on the HTK Mel scale between 0 Hz and
    Nyquist and snapped down to FFT bin indices.  The falling slope is written
    after the rising one, so the centre bin always ends up at 1.
    """

    n_bins = fft_size // 2 + 1
    mel_max = float(librosa.hz_to_mel(sample_rate / 2.0, htk=True))
    mel_points = np.linspace(0.0, mel_max, n_mels + 2)
    hz_points = librosa.mel_to_hz(mel_points, htk=True)
    bins = np.floor(hz_points * fft_size / float(sample_rate)).astype(int)
    bins = np.clip(bins, 0, n_bins - 1)

    fb = np.zeros((n_mels, n_bins), dtype=np.float64)
    for m in range(n_mels):
        left, center, right = int(bins[m]), int(bins[m + 1]), int(bins[m + 2])
        if center > left:
            k = np.arange(left, center + 1)
            fb[m, k] = (k - left) / float(center - left)
        if right > center:
            k = np.arange(center, right + 1)
            fb[m, k] = (right - k) / float(right - center)
    fb.setflags(write=False)
    return fb


def compute_deltas(coefficients: np.ndarray, width: int = 2) -> np.ndarray:
    """Regression deltas with edge frames clamped to the first/last index."""

    coeffs = np.asarray(coefficients, dtype=np.float64)
    if coeffs.shape[0] == 0:
        return np.zeros_like(coeffs)
    # A first-order Savitzky-Golay slope over 2*width+1 frames is exactly the
    # regression delta; "nearest" padding repeats the edge frames.
    return librosa.feature.delta(
        coeffs, width=2 * width + 1, order=1, axis=0, mode="nearest"
    )


def _frame_signal(signal: np.ndarray, frame_length: int, hop: int) -> np.ndarray:
    return librosa.util.frame(
        np.ascontiguousarray(signal), frame_length=frame_length, hop_length=hop, axis=0
    )


def extract_mfcc_features(
    samples: np.ndarray,
    sample_rate: int,
    config: DiarizationConfig | None = None,
) -> FeatureFrames:
    """Compute per-frame MFCCs, deltas, delta-deltas, RMS energy and timestamps.

    Returns an empty :class:`FeatureFrames` when fewer than ``frame_length``
    samples are available.
    """

    cfg = config or DiarizationConfig()
    x = np.asarray(samples, dtype=np.float64).reshape(-1)
    if x.size < cfg.frame_length or sample_rate <= 0:
        return FeatureFrames.empty(sample_rate, cfg.n_mfcc)

    emphasized = pre_emphasize(x, cfg.pre_emphasis)
    frames = _frame_signal(emphasized, cfg.frame_length, cfg.frame_hop)
    window = scipy.signal.get_window("hamming", cfg.frame_length, fftbins=True)
    windowed = frames * window[np.newaxis, :]

    rms = np.sqrt(np.mean(windowed * windowed, axis=1))
    spectrum = np.fft.rfft(windowed, n=cfg.fft_size, axis=1)
    power = spectrum.real**2 + spectrum.imag**2

    fb = mel_filterbank(int(sample_rate), cfg.fft_size, cfg.n_mels)
    mel_energies = power @ fb.T
    log_mel = np.log(np.maximum(mel_energies, cfg.mel_floor))
    # scipy's unnormalised DCT-II carries a factor of two.
    mfccs = 0.5 * scipy.fft.dct(log_mel, type=2, axis=1, norm=None)[:, : cfg.n_mfcc]

    deltas = compute_deltas(mfccs, cfg.delta_width)
    delta_deltas = compute_deltas(deltas, cfg.delta_width)
    timestamps = np.arange(mfccs.shape[0], dtype=np.float64) * cfg.frame_hop / float(sample_rate)

    return FeatureFrames(
        mfccs=mfccs,
        deltas=deltas,
        delta_deltas=delta_deltas,
        rms_energies=rms,
        timestamps=timestamps,
        sample_rate=int(sample_rate),
    )
