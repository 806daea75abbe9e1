"""Detect diarized transcripts that lost text compared with the full transcript.

When the word-level results behind a diarized transcript are incomplete, the
caller should show the recognizer's full text instead.  The checks run in a
fixed order and the first one that fires supplies the reason code.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from .models import DiarizedSegment, WordSegmentInfo

__all__ = ["CompletenessEvaluation", "normalize_text", "evaluate_completeness"]

MIN_FULL_TEXT_LENGTH = 20
MIN_SHORTFALL_CHARS = 12
MIN_LENGTH_RATIO = 0.55
MIN_WORD_SPAN_MS = 10_000
MIN_COVERAGE_RATIO = 0.55
LONG_CHUNK_SEC = 20.0
MAX_SHORT_DIARIZED_LENGTH = 8

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class CompletenessEvaluation:
    is_suspect_truncation: bool
    should_fallback_to_full_text: bool
    reason: str | None
    full_text_length: int
    diarized_text_length: int
    word_span_ms: int | None
    diarized_span_ms: int | None


def normalize_text(text: str) -> str:
    return _WHITESPACE.sub(" ", text.strip())


def _word_span_ms(words: Sequence[WordSegmentInfo]) -> int | None:
    if not words:
        return None
    first_start = min(w.start_sec for w in words)
    last_end = max(w.start_sec + w.duration_sec for w in words)
    return max(0, int((last_end - first_start) * 1000))


def _diarized_span_ms(segments: Sequence[DiarizedSegment]) -> int | None:
    if not segments:
        return None
    first_start = min(s.start_offset_ms for s in segments)
    last_end = max(s.end_offset_ms for s in segments)
    return max(0, last_end - first_start)


def evaluate_completeness(
    full_text: str,
    words: Sequence[WordSegmentInfo],
    diarized_segments: Sequence[DiarizedSegment],
    chunk_duration_sec: float,
) -> CompletenessEvaluation:
    full = normalize_text(full_text)
    diarized = normalize_text(" ".join(s.text for s in diarized_segments))
    word_span = _word_span_ms(words)
    diarized_span = _diarized_span_ms(diarized_segments)

    def _result(reason: str | None) -> CompletenessEvaluation:
        flagged = reason is not None
        return CompletenessEvaluation(
            is_suspect_truncation=flagged,
            should_fallback_to_full_text=flagged,
            reason=reason,
            full_text_length=len(full),
            diarized_text_length=len(diarized),
            word_span_ms=word_span,
            diarized_span_ms=diarized_span,
        )

    if not full:
        return _result(None)
    if not diarized:
        return _result("diarized_text_empty")

    full_len = len(full)
    diarized_len = len(diarized)
    ratio = diarized_len / max(1, full_len)
    if (
        full_len >= MIN_FULL_TEXT_LENGTH
        and full_len - diarized_len >= MIN_SHORTFALL_CHARS
        and ratio < MIN_LENGTH_RATIO
    ):
        return _result("diarized_text_much_shorter_than_full_text")

    if word_span is not None and diarized_span is not None and word_span >= MIN_WORD_SPAN_MS:
        if diarized_span / max(1, word_span) < MIN_COVERAGE_RATIO:
            return _result("diarized_time_coverage_too_small")

    # Long chunk with almost no diarized text, even without usable timestamps.
    if (
        chunk_duration_sec >= LONG_CHUNK_SEC
        and full_len >= MIN_FULL_TEXT_LENGTH
        and diarized_len <= MAX_SHORT_DIARIZED_LENGTH
    ):
        return _result("chunk_long_but_diarized_text_too_short")

    return _result(None)
