"""Tests for mapping recognized words onto speaker turns."""

from __future__ import annotations

from diarcore.pipeline.diarization.models import SpeakerSegment, WordSegmentInfo
from diarcore.pipeline.diarization.words import (
    find_best_segment,
    group_words,
    map_words,
    single_speaker_result,
)


def _word(text: str, start: float, duration: float = 0.2) -> WordSegmentInfo:
    return WordSegmentInfo(text=text, start_sec=start, duration_sec=duration)


SEGMENTS = [SpeakerSegment(0, 100, 0), SpeakerSegment(100, 250, 1), SpeakerSegment(300, 400, 0)]


def test_largest_overlap_wins() -> None:
    # 0.9-1.3 s overlaps speaker 0 for 0.1 s and speaker 1 for 0.3 s.
    assert find_best_segment(0.9, 1.3, SEGMENTS) == 1


def test_equal_overlap_keeps_first_segment() -> None:
    assert find_best_segment(0.75, 1.25, SEGMENTS) == 0


def test_word_in_gap_goes_to_nearest_midpoint() -> None:
    # Gap 2.5-3.0 s; midpoint 2.9 is closer to the 3.0-4.0 s turn (mid 3.5)
    # than to the 1.0-2.5 s turn (mid 1.75).
    assert find_best_segment(2.85, 2.95, SEGMENTS) == 0


def test_every_word_gets_exactly_one_label() -> None:
    words = [_word(f"w{i}", 0.3 * i) for i in range(15)]

    labels = map_words(words, SEGMENTS)

    assert len(labels) == len(words)
    assert set(labels) <= {0, 1}


def test_no_segments_means_speaker_zero() -> None:
    assert map_words([_word("a", 0.0), _word("b", 1.0)], []) == [0, 0]


def test_group_words_splits_on_label_change() -> None:
    words = [_word("hello", 0.0), _word("there", 0.3), _word("hi", 1.25, 0.25), _word("ok", 3.1)]

    segments = group_words(words, [0, 0, 1, 0])

    assert [s.speaker_index for s in segments] == [0, 1, 0]
    assert segments[0].text == "hello there"
    assert segments[0].start_offset_ms == 0
    assert segments[0].end_offset_ms == 500
    assert segments[1].start_offset_ms == 1250
    assert segments[1].end_offset_ms == 1500


def test_single_speaker_result() -> None:
    empty = single_speaker_result([])
    assert empty.segments == [] and empty.speaker_count == 0 and empty.speaker_profiles == []

    result = single_speaker_result([_word("a", 0.0), _word("b", 0.5)])
    assert result.speaker_count == 1
    assert len(result.segments) == 1
    assert result.segments[0].speaker_index == 0
    assert result.segments[0].text == "a b"
    assert result.speaker_profiles == []
