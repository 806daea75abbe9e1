"""BIC speaker change-point search with a growing analysis window.

For every speech region the window starts at ``bic_min_window_frames`` and
grows by ``bic_window_growth_frames``.  At each size every
``bic_candidate_stride``-th split point away from the window edges is scored
with

    dBIC = 0.5 * (n log|S| - n1 log|S1| - n2 log|S2|) - lambda * 0.5 * p * ln(n)

where ``p = d + d(d+1)/2``.  Growth stops at the first window that yields a
positive score; the split becomes a boundary and the search restarts there.
Candidates whose covariance is not positive definite are skipped.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

from .config import DiarizationConfig
from .covariance import compute_covariance, covariance_from_moments, log_determinant
from .models import Boundary, SegmentRange, SpeechRegion

__all__ = ["find_best_split", "segment_region", "segment", "split_regions"]


def _margin(cfg: DiarizationConfig) -> int:
    return max(cfg.bic_min_window_frames // 3, cfg.bic_min_margin_frames)


def find_best_split(
    frames: np.ndarray,
    config: DiarizationConfig | None = None,
) -> tuple[int, float]:
    """Return ``(offset, dBIC)`` for the best split of ``frames``.

    The score is clamped at zero, so ``(0, 0.0)`` means "no change found".
    """

    cfg = config or DiarizationConfig()
    x = np.asarray(frames, dtype=np.float64)
    if x.ndim != 2 or x.shape[0] < cfg.bic_min_window_frames or x.shape[1] == 0:
        return 0, 0.0
    n, dim = x.shape
    reg = cfg.covariance_regularization

    logdet_all = log_determinant(compute_covariance(x, reg))
    if logdet_all == -math.inf:
        return 0, 0.0

    p = dim + 0.5 * dim * (dim + 1)
    penalty = cfg.bic_penalty_lambda * 0.5 * p * math.log(n)

    margin = _margin(cfg)
    if margin >= n - margin:
        return 0, 0.0

    prefix = np.cumsum(x, axis=0)
    prefix_outer = np.cumsum(x[:, :, np.newaxis] * x[:, np.newaxis, :], axis=0)
    total, total_outer = prefix[-1], prefix_outer[-1]

    best_offset = 0
    best_bic = -math.inf
    for split in range(margin, n - margin, cfg.bic_candidate_stride):
        left_sum, left_outer = prefix[split - 1], prefix_outer[split - 1]
        n1, n2 = split, n - split
        logdet_left = log_determinant(covariance_from_moments(n1, left_sum, left_outer, reg))
        logdet_right = log_determinant(
            covariance_from_moments(n2, total - left_sum, total_outer - left_outer, reg)
        )
        if logdet_left == -math.inf or logdet_right == -math.inf:
            continue
        bic = 0.5 * (n * logdet_all - n1 * logdet_left - n2 * logdet_right) - penalty
        if bic > best_bic:
            best_bic = bic
            best_offset = split
    return best_offset, max(best_bic, 0.0)


def segment_region(
    mfccs: np.ndarray,
    start_frame: int,
    end_frame: int,
    config: DiarizationConfig | None = None,
) -> list[Boundary]:
    cfg = config or DiarizationConfig()
    total_frames = int(mfccs.shape[0]) if mfccs.ndim == 2 else 0
    boundaries: list[Boundary] = []
    search_start = int(start_frame)
    while search_start < end_frame:
        window_end = search_start + cfg.bic_min_window_frames
        if window_end > end_frame:
            break
        best_split = -1
        best_bic = 0.0
        while window_end <= end_frame:
            lo = max(0, min(search_start, total_frames))
            hi = max(lo, min(window_end, total_frames))
            offset, bic = find_best_split(mfccs[lo:hi], cfg)
            if bic > best_bic:
                best_bic = bic
                best_split = search_start + offset
            if best_bic > 0:
                break
            window_end += cfg.bic_window_growth_frames
        if best_bic > 0 and best_split > search_start:
            boundaries.append(Boundary(frame_index=best_split, bic_delta=float(best_bic)))
            search_start = best_split
        else:
            break
    return boundaries


def segment(
    mfccs: np.ndarray,
    speech_regions: Sequence[SpeechRegion],
    config: DiarizationConfig | None = None,
) -> list[Boundary]:
    """Detect change points inside every region; boundaries come back sorted."""

    cfg = config or DiarizationConfig()
    x = np.asarray(mfccs, dtype=np.float64)
    if x.size == 0 or not speech_regions:
        return []
    boundaries: list[Boundary] = []
    for region in speech_regions:
        boundaries.extend(segment_region(x, region.start_frame, region.end_frame, cfg))
    return sorted(boundaries, key=lambda b: b.frame_index)


def split_regions(
    speech_regions: Sequence[SpeechRegion],
    boundaries: Sequence[Boundary],
) -> list[SegmentRange]:
    """Cut each region at the boundaries that fall strictly inside it."""

    cuts = sorted({b.frame_index for b in boundaries})
    ranges: list[SegmentRange] = []
    for region in speech_regions:
        start = region.start_frame
        for cut in cuts:
            if region.start_frame < cut < region.end_frame and cut > start:
                ranges.append(SegmentRange(start, cut))
                start = cut
        if region.end_frame > start:
            ranges.append(SegmentRange(start, region.end_frame))
    return ranges
