from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from .models import FeatureFrames, SegmentRange, SpeakerEmbedding

_STD_EPS = 1e-10

__all__ = ["EMBEDDING_DIM", "compute_embedding", "embed_segments"]

EMBEDDING_DIM = 130


def _correlations(mfccs: np.ndarray, stds: np.ndarray) -> np.ndarray:
    n, dim = mfccs.shape
    rows, cols = np.triu_indices(dim, k=1)
    if n <= 1:
        return np.zeros(rows.size, dtype=np.float64)
    centered = mfccs - mfccs.mean(axis=0, keepdims=True)
    cov = (centered.T @ centered) / float(n - 1)
    denom = stds[rows] * stds[cols]
    valid = (stds[rows] >= _STD_EPS) & (stds[cols] >= _STD_EPS) & (denom > _STD_EPS)
    out = np.zeros(rows.size, dtype=np.float64)
    out[valid] = cov[rows[valid], cols[valid]] / denom[valid]
    return out


def compute_embedding(
    mfccs: np.ndarray,
    deltas: np.ndarray,
    delta_deltas: np.ndarray,
) -> SpeakerEmbedding | None:
    """Summarise a run of frames as an L2-normalised statistics vector.

    Layout: MFCC means, MFCC standard deviations, delta means, delta-delta
    means, then the upper-triangular MFCC correlation coefficients.  Returns
    ``None`` when there are no frames.
    """

    m = np.asarray(mfccs, dtype=np.float64)
    d = np.asarray(deltas, dtype=np.float64)
    dd = np.asarray(delta_deltas, dtype=np.float64)
    if m.ndim != 2 or m.shape[0] == 0 or m.shape[1] == 0:
        return None
    n = min(m.shape[0], d.shape[0] if d.ndim == 2 else 0, dd.shape[0] if dd.ndim == 2 else 0)
    if n == 0:
        return None
    m, d, dd = m[:n], d[:n], dd[:n]

    means = m.mean(axis=0)
    stds = m.std(axis=0, ddof=1) if n > 1 else np.zeros(m.shape[1], dtype=np.float64)
    values = np.concatenate(
        [means, stds, d.mean(axis=0), dd.mean(axis=0), _correlations(m, stds)]
    )
    values = np.nan_to_num(values, nan=0.0, posinf=0.0, neginf=0.0)
    return SpeakerEmbedding(values)


def embed_segments(
    frames: FeatureFrames,
    ranges: Sequence[SegmentRange],
) -> list[SpeakerEmbedding | None]:
    out: list[SpeakerEmbedding | None] = []
    total = len(frames)
    for rng in ranges:
        lo = max(0, min(rng.start_frame, total))
        hi = max(lo, min(rng.end_frame, total))
        out.append(
            compute_embedding(
                frames.mfccs[lo:hi], frames.deltas[lo:hi], frames.delta_deltas[lo:hi]
            )
        )
    return out
