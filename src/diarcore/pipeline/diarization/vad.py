"""Energy based voice activity detection over per-frame RMS values."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from scipy import ndimage

from .config import DiarizationConfig
from .models import SpeechRegion

__all__ = [
    "compute_adaptive_threshold",
    "morphological_close",
    "morphological_open",
    "extract_regions",
    "detect_speech_regions",
]


def compute_adaptive_threshold(
    energies: Sequence[float] | np.ndarray,
    percentile: float = 0.30,
    ratio: float = 0.40,
) -> float:
    """Noise floor (sorted percentile) plus ``ratio`` of the dynamic range."""

    values = np.sort(np.asarray(energies, dtype=np.float64).reshape(-1))
    if values.size == 0:
        return 0.0
    idx = min(int(values.size * percentile), values.size - 1)
    noise_floor = float(values[idx])
    peak = float(values[-1])
    return noise_floor + ratio * (peak - noise_floor)


def _structure(kernel_size: int) -> np.ndarray:
    half = max(0, int(kernel_size) // 2)
    return np.ones(2 * half + 1, dtype=bool)


def _dilate(mask: np.ndarray, kernel_size: int) -> np.ndarray:
    if mask.size == 0:
        return mask.copy()
    return ndimage.binary_dilation(mask, structure=_structure(kernel_size), border_value=0)


def _erode(mask: np.ndarray, kernel_size: int) -> np.ndarray:
    if mask.size == 0:
        return mask.copy()
    # Positions past either edge count as speech so a full mask survives erosion.
    return ndimage.binary_erosion(mask, structure=_structure(kernel_size), border_value=1)


def morphological_close(mask: Sequence[bool] | np.ndarray, kernel_size: int = 30) -> np.ndarray:
    """Dilate then erode; bridges gaps shorter than ``kernel_size`` frames."""

    arr = np.asarray(mask, dtype=bool).reshape(-1)
    return _erode(_dilate(arr, kernel_size), kernel_size)


def morphological_open(mask: Sequence[bool] | np.ndarray, kernel_size: int = 20) -> np.ndarray:
    """Erode then dilate; drops bursts shorter than ``kernel_size`` frames."""

    arr = np.asarray(mask, dtype=bool).reshape(-1)
    return _dilate(_erode(arr, kernel_size), kernel_size)


def extract_regions(mask: Sequence[bool] | np.ndarray) -> list[SpeechRegion]:
    arr = np.asarray(mask, dtype=bool).reshape(-1)
    if arr.size == 0:
        return []
    padded = np.concatenate(([False], arr, [False])).astype(np.int8)
    edges = np.diff(padded)
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1)
    return [SpeechRegion(int(s), int(e)) for s, e in zip(starts, ends) if e > s]


def detect_speech_regions(
    rms_energies: Sequence[float] | np.ndarray,
    config: DiarizationConfig | None = None,
) -> list[SpeechRegion]:
    """Return sorted, non-overlapping ``[start, end)`` speech regions."""

    cfg = config or DiarizationConfig()
    energies = np.asarray(rms_energies, dtype=np.float64).reshape(-1)
    if energies.size == 0:
        return []
    threshold = compute_adaptive_threshold(
        energies, cfg.vad_energy_percentile, cfg.vad_threshold_ratio
    )
    mask = energies > threshold
    if not mask.any():
        return []
    closed = morphological_close(mask, cfg.vad_close_kernel)
    opened = morphological_open(closed, cfg.vad_open_kernel)
    return extract_regions(opened)
