"""Audio source helpers: decode a file to mono float samples and resample."""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import soundfile as sf

from ..errors import AudioReadError

logger = logging.getLogger(__name__)

__all__ = ["read_samples", "resample_linear", "probe_sample_rate"]


def read_samples(path: str | Path) -> tuple[np.ndarray, int]:
    """Read ``path`` via libsndfile and down-mix to mono ``float32``.

    Raises :class:`AudioReadError` when the file cannot be decoded.
    """

    source = Path(path)
    try:
        y, sr = sf.read(source, always_2d=False, dtype="float32")
    except (sf.LibsndfileError, RuntimeError, OSError) as exc:
        raise AudioReadError(
            message=f"could not read audio from {source}",
            stage="audio",
            context={"path": source.as_posix()},
            cause=exc,
        ) from exc
    if y.ndim > 1:
        y = np.mean(y, axis=1)
    return np.asarray(y, dtype=np.float32), int(sr)


def probe_sample_rate(path: str | Path) -> int | None:
    try:
        return int(sf.info(str(path)).samplerate)
    except (sf.LibsndfileError, RuntimeError, OSError) as exc:
        logger.warning("Audio probe failed for %s: %s", path, exc)
        return None


def resample_linear(
    samples: np.ndarray,
    source_rate: float,
    target_rate: float,
    tolerance_hz: float = 1.0,
) -> np.ndarray:
    """Linear-interpolation resampling.

    Input is returned unchanged when the rates differ by at most
    ``tolerance_hz`` or there is nothing to interpolate.
    """

    x = np.asarray(samples, dtype=np.float32).reshape(-1)
    if x.size <= 1 or source_rate <= 0 or target_rate <= 0:
        return x
    if abs(float(source_rate) - float(target_rate)) <= tolerance_hz:
        return x
    ratio = float(source_rate) / float(target_rate)
    out_count = max(1, int(np.floor(x.size / ratio + 0.5)))
    positions = np.arange(out_count, dtype=np.float64) * ratio
    # np.interp clamps past the last sample, matching edge replication.
    return np.interp(positions, np.arange(x.size, dtype=np.float64), x).astype(np.float32)
