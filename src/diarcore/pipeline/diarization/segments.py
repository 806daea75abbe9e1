from __future__ import annotations

from collections.abc import Sequence

from .config import DiarizationConfig
from .models import SpeakerSegment

__all__ = [
    "merge_short_segments",
    "merge_with_collar",
    "remove_isolated_turns",
    "merge_consecutive",
    "smooth",
]


def _duration_ms(seg: SpeakerSegment, frame_hop_ms: int) -> int:
    return seg.frame_count * frame_hop_ms


def merge_short_segments(
    segments: Sequence[SpeakerSegment],
    min_duration_ms: int = 500,
    frame_hop_ms: int = 10,
) -> list[SpeakerSegment]:
    """Fold segments shorter than ``min_duration_ms`` into their predecessor.

    The predecessor keeps its label.  Repeats until stable, at most
    ``len(segments)`` rounds.
    """

    result = list(segments)
    if len(result) <= 1:
        return result
    changed = True
    rounds = 0
    max_rounds = len(result)
    while changed and rounds < max_rounds:
        changed = False
        rounds += 1
        merged: list[SpeakerSegment] = []
        for seg in result:
            if _duration_ms(seg, frame_hop_ms) < min_duration_ms and merged:
                prev = merged.pop()
                merged.append(SpeakerSegment(prev.start_frame, seg.end_frame, prev.speaker_label))
                changed = True
            else:
                merged.append(seg)
        result = merged
    return result


def merge_with_collar(
    segments: Sequence[SpeakerSegment],
    collar_ms: int = 300,
    frame_hop_ms: int = 10,
) -> list[SpeakerSegment]:
    """Join same-speaker neighbours separated by at most ``collar_ms``."""

    if len(segments) <= 1:
        return list(segments)
    collar_frames = collar_ms // max(1, frame_hop_ms)
    result = [segments[0]]
    for seg in segments[1:]:
        prev = result[-1]
        gap = seg.start_frame - prev.end_frame
        if gap <= collar_frames and prev.speaker_label == seg.speaker_label:
            result[-1] = SpeakerSegment(prev.start_frame, seg.end_frame, prev.speaker_label)
        else:
            result.append(seg)
    return result


def remove_isolated_turns(
    segments: Sequence[SpeakerSegment],
    max_isolated_ms: int = 1000,
    frame_hop_ms: int = 10,
) -> list[SpeakerSegment]:
    """Absorb short turns sandwiched between two turns of one other speaker."""

    if len(segments) <= 2:
        return list(segments)
    result: list[SpeakerSegment] = []
    last_index = len(segments) - 1
    for i, seg in enumerate(segments):
        is_short = _duration_ms(seg, frame_hop_ms) < max_isolated_ms
        if is_short and 0 < i < last_index:
            prev, nxt = segments[i - 1], segments[i + 1]
            if prev.speaker_label == nxt.speaker_label:
                if result:
                    last = result.pop()
                    result.append(SpeakerSegment(last.start_frame, seg.end_frame, last.speaker_label))
                continue
        result.append(seg)
    return result


def merge_consecutive(segments: Sequence[SpeakerSegment]) -> list[SpeakerSegment]:
    if not segments:
        return []
    result = [segments[0]]
    for seg in segments[1:]:
        last = result[-1]
        if last.speaker_label == seg.speaker_label:
            result[-1] = SpeakerSegment(last.start_frame, seg.end_frame, seg.speaker_label)
        else:
            result.append(seg)
    return result


def smooth(
    segments: Sequence[SpeakerSegment],
    config: DiarizationConfig | None = None,
) -> list[SpeakerSegment]:
    """Run the four smoothing passes in order.

    1. minimum duration, 2. collar merge, 3. isolated-turn removal,
    4. consecutive same-speaker merge.
    """

    if len(segments) <= 1:
        return list(segments)
    cfg = config or DiarizationConfig()
    hop_ms = cfg.frame_hop_ms
    ordered = sorted(segments, key=lambda s: s.start_frame)
    out = merge_short_segments(ordered, cfg.min_segment_ms, hop_ms)
    out = merge_with_collar(out, cfg.collar_ms, hop_ms)
    out = remove_isolated_turns(out, cfg.isolated_turn_ms, hop_ms)
    return merge_consecutive(out)
