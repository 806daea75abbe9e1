"""End-to-end tests for the per-chunk diarizer."""

from __future__ import annotations

import numpy as np
import pytest
import soundfile as sf

from diarcore.pipeline.diarization import pipeline as pipeline_module
from diarcore.pipeline.diarization.alignment import align
from diarcore.pipeline.diarization.pipeline import SpeakerDiarizer
from diarcore.pipeline.errors import AudioReadError
from synth import SR, make_words, sine, two_speaker_chunk


def test_tone_is_a_single_speaker(tmp_path) -> None:
    path = tmp_path / "tone.wav"
    sf.write(path, sine(2.0), SR)
    words = make_words(4)

    result = SpeakerDiarizer().diarize(path, words)

    assert result.speaker_count == 1
    assert len(result.segments) == 1
    assert result.segments[0].speaker_index == 0
    assert result.segments[0].text == "w0 w1 w2 w3"
    assert result.speaker_profiles == []


def test_no_words_short_circuits() -> None:
    result = SpeakerDiarizer().diarize_samples(sine(1.0), SR, [])

    assert result.segments == []
    assert result.speaker_count == 0


def test_unreadable_audio_falls_back(tmp_path) -> None:
    path = tmp_path / "broken.wav"
    path.write_bytes(b"not really audio")
    diarizer = SpeakerDiarizer()

    result = diarizer.diarize(path, make_words(3))

    assert result.speaker_count == 1
    assert diarizer.get_debug_payload()["fallback_reason"] == "unreadable_audio"


def test_reader_errors_are_contained() -> None:
    def _stub_reader(path):
        raise AudioReadError(message="boom", stage="audio", context={"path": str(path)})

    diarizer = SpeakerDiarizer(audio_reader=_stub_reader)

    result = diarizer.diarize("missing.wav", make_words(2))

    assert result.speaker_count == 1
    assert len(result.segments) == 1
    assert diarizer.get_debug_payload()["error"] == {"path": "missing.wav"}


def test_stage_errors_fall_back(monkeypatch) -> None:
    def _broken_cluster(embeddings, config):
        raise ValueError("degenerate distances")

    monkeypatch.setattr(pipeline_module, "cluster", _broken_cluster)
    samples, words = two_speaker_chunk(seed=5)
    diarizer = SpeakerDiarizer()

    result = diarizer.diarize_samples(samples, SR, words)

    assert result.speaker_count == 1
    payload = diarizer.get_debug_payload()
    assert payload["fallback_reason"] == "stage_error"
    assert "degenerate distances" in payload["error"]["cause"]


def test_silence_and_short_audio_fall_back() -> None:
    diarizer = SpeakerDiarizer()

    diarizer.diarize_samples(np.zeros(SR, dtype=np.float32), SR, make_words(2))
    assert diarizer.get_debug_payload()["fallback_reason"] == "no_speech_regions"

    diarizer.diarize_samples(np.zeros(100, dtype=np.float32), SR, make_words(2))
    assert diarizer.get_debug_payload()["fallback_reason"] == "empty_mfcc"

    bad = np.full(SR, np.nan, dtype=np.float32)
    result = diarizer.diarize_samples(bad, SR, make_words(2))
    assert result.speaker_count == 1


def test_two_speakers_are_separated() -> None:
    samples, words = two_speaker_chunk(seed=1)
    diarizer = SpeakerDiarizer()

    result = diarizer.diarize_samples(samples, SR, words)

    assert result.speaker_count == 2
    assert [seg.speaker_index for seg in result.segments] == [0, 1, 0, 1]
    assert result.segments[0].text == "a0w0 a0w1 a0w2"
    assert len(result.speaker_profiles) == 2
    for prof in result.speaker_profiles:
        assert prof.embedding is not None
        assert prof.embedding.norm == pytest.approx(1.0)
        assert prof.sample_count == 2
    payload = diarizer.get_debug_payload()
    assert payload["vad"]["region_count"] == 4
    assert payload["clustering"]["cluster_count"] == 2


def test_resampled_input_is_accepted() -> None:
    samples, words = two_speaker_chunk(seed=2)
    # Plain decimation-by-interpolation keeps the band split well inside 8 kHz.
    upsampled = np.interp(
        np.arange(int(samples.size * 1.5)) / 1.5, np.arange(samples.size), samples
    ).astype(np.float32)

    result = SpeakerDiarizer().diarize_samples(upsampled, 24000, words)

    assert len(result.segments) >= 1
    assert sum(len(seg.text.split()) for seg in result.segments) == len(words)


def test_two_chunks_keep_the_same_global_speakers() -> None:
    diarizer = SpeakerDiarizer()
    first, words_first = two_speaker_chunk(seed=3, order="ABAB")
    second, words_second = two_speaker_chunk(seed=4, order="ABAB")

    chunk0 = diarizer.diarize_samples(first, SR, words_first)
    chunk1 = diarizer.diarize_samples(second, SR, words_second)
    aligned = align({0: chunk0.speaker_profiles, 1: chunk1.speaker_profiles})

    assert len(aligned.global_profiles) == 2
    assert aligned.alignment_map[0] == {0: 0, 1: 1}
    assert aligned.alignment_map[1] == {0: 0, 1: 1}
    assert [p.sample_count for p in aligned.global_profiles] == [4, 4]
