"""Tests for the diarized-transcript truncation check."""

from __future__ import annotations

from diarcore.pipeline.diarization import completeness
from diarcore.pipeline.diarization.completeness import evaluate_completeness, normalize_text
from diarcore.pipeline.diarization.models import DiarizedSegment, WordSegmentInfo


def _seg(text: str, start_ms: int, end_ms: int, speaker: int = 0) -> DiarizedSegment:
    return DiarizedSegment(
        id=f"s{start_ms}",
        speaker_index=speaker,
        text=text,
        start_offset_ms=start_ms,
        end_offset_ms=end_ms,
    )


def _words(span_sec: float, count: int = 4) -> list[WordSegmentInfo]:
    step = span_sec / count
    return [
        WordSegmentInfo(text=f"w{i}", start_sec=i * step, duration_sec=step) for i in range(count)
    ]


def test_normalize_text() -> None:
    assert normalize_text("  hello \n\t world  ") == "hello world"


def test_empty_full_text_does_not_fall_back() -> None:
    result = evaluate_completeness("   ", [], [_seg("something", 0, 1000)], 5.0)

    assert result.reason is None
    assert not result.should_fallback_to_full_text
    assert not result.is_suspect_truncation
    assert result.full_text_length == 0


def test_empty_diarized_text_falls_back() -> None:
    result = evaluate_completeness("hello there", _words(2.0), [_seg("  ", 0, 1000)], 5.0)

    assert result.should_fallback_to_full_text
    assert result.is_suspect_truncation
    assert result.reason == "diarized_text_empty"
    assert result.diarized_text_length == 0


def test_much_shorter_diarized_text_falls_back() -> None:
    full = "this is the full transcription of the whole chunk"
    segments = [_seg("this is the", 0, 1500)]

    result = evaluate_completeness(full, _words(2.0), segments, 5.0)

    assert result.reason == "diarized_text_much_shorter_than_full_text"
    assert result.full_text_length == len(full)
    assert result.diarized_text_length == len("this is the")


def test_small_time_coverage_falls_back() -> None:
    full = "alpha beta gamma delta"
    segments = [_seg("alpha beta", 0, 2000), _seg("gamma delta", 2000, 4000, speaker=1)]

    result = evaluate_completeness(full, _words(12.0), segments, 12.0)

    assert result.reason == "diarized_time_coverage_too_small"
    assert result.word_span_ms == 12000
    assert result.diarized_span_ms == 4000


def test_comparable_outputs_do_not_fall_back() -> None:
    full = "alpha beta gamma delta"
    segments = [_seg("alpha beta", 0, 6000), _seg("gamma delta", 6000, 11000, speaker=1)]

    result = evaluate_completeness(full, _words(12.0), segments, 12.0)

    assert result.reason is None
    assert not result.should_fallback_to_full_text


def test_long_chunk_with_tiny_diarized_text(monkeypatch) -> None:
    full = "twenty characters or more of text"
    segments = [_seg("tiny", 0, 500)]

    # The length-ratio check fires first with default limits.
    result = evaluate_completeness(full, [], segments, 30.0)
    assert result.reason == "diarized_text_much_shorter_than_full_text"

    monkeypatch.setattr(completeness, "MIN_SHORTFALL_CHARS", 1000)
    result = evaluate_completeness(full, [], segments, 30.0)
    assert result.reason == "chunk_long_but_diarized_text_too_short"
    assert result.word_span_ms is None

    assert evaluate_completeness(full, [], segments, 10.0).reason is None
