from __future__ import annotations

from collections.abc import Sequence

from .models import DiarizationResult, DiarizedSegment, SpeakerSegment, WordSegmentInfo, new_id

__all__ = [
    "find_best_segment",
    "map_words",
    "group_words",
    "single_speaker_result",
]


def _nearest_label(word_mid: float, segments: Sequence[SpeakerSegment], hop_sec: float) -> int:
    best_label = segments[0].speaker_label
    best_dist = float("inf")
    for seg in segments:
        seg_mid = (seg.start_frame + seg.end_frame) / 2.0 * hop_sec
        dist = abs(word_mid - seg_mid)
        if dist < best_dist:
            best_dist = dist
            best_label = seg.speaker_label
    return best_label


def find_best_segment(
    word_start: float,
    word_end: float,
    segments: Sequence[SpeakerSegment],
    frame_hop_sec: float = 0.01,
) -> int:
    """Label of the segment with the largest overlap, else the nearest one."""

    best_label = segments[0].speaker_label
    best_overlap = 0.0
    for seg in segments:
        seg_start = seg.start_frame * frame_hop_sec
        seg_end = seg.end_frame * frame_hop_sec
        overlap = max(0.0, min(word_end, seg_end) - max(word_start, seg_start))
        if overlap > best_overlap:
            best_overlap = overlap
            best_label = seg.speaker_label
    if best_overlap <= 0.0:
        best_label = _nearest_label((word_start + word_end) / 2.0, segments, frame_hop_sec)
    return best_label


def map_words(
    words: Sequence[WordSegmentInfo],
    segments: Sequence[SpeakerSegment],
    frame_hop_sec: float = 0.01,
) -> list[int]:
    """One speaker label per word, in input order."""

    if not segments:
        return [0 for _ in words]
    return [
        find_best_segment(w.start_sec, w.start_sec + w.duration_sec, segments, frame_hop_sec)
        for w in words
    ]


def _make_segment(words: Sequence[WordSegmentInfo], speaker_index: int) -> DiarizedSegment:
    first, last = words[0], words[-1]
    return DiarizedSegment(
        id=new_id(),
        speaker_index=int(speaker_index),
        text=" ".join(w.text for w in words),
        start_offset_ms=int(first.start_sec * 1000),
        end_offset_ms=int((last.start_sec + last.duration_sec) * 1000),
    )


def group_words(
    words: Sequence[WordSegmentInfo],
    labels: Sequence[int],
) -> list[DiarizedSegment]:
    """Split the word stream wherever the speaker label changes."""

    out: list[DiarizedSegment] = []
    current: list[WordSegmentInfo] = []
    current_label: int | None = None
    for word, label in zip(words, labels):
        if current and label != current_label:
            out.append(_make_segment(current, current_label or 0))
            current = []
        current.append(word)
        current_label = label
    if current:
        out.append(_make_segment(current, current_label or 0))
    return out


def single_speaker_result(words: Sequence[WordSegmentInfo]) -> DiarizationResult:
    if not words:
        return DiarizationResult(segments=[], speaker_count=0, speaker_profiles=[])
    return DiarizationResult(
        segments=[_make_segment(list(words), 0)],
        speaker_count=1,
        speaker_profiles=[],
    )
