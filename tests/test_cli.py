"""Regression tests for the diarcore Typer CLI."""

from __future__ import annotations

import json

import soundfile as sf
from typer.testing import CliRunner

from diarcore import cli
from diarcore.pipeline.diarization.models import DiarizationResult
from synth import SR, sine

runner = CliRunner()


def _chunk(tmp_path, name: str, seconds: float = 2.0):
    audio = tmp_path / f"{name}.wav"
    sf.write(audio, sine(seconds), SR)
    words = tmp_path / f"{name}.json"
    words.write_text(
        json.dumps(
            {
                "words": [
                    {"text": "hello", "start_sec": 0.2, "duration_sec": 0.3},
                    {"text": "world", "start_sec": 0.6, "duration_sec": 0.3},
                ]
            }
        ),
        encoding="utf-8",
    )
    return audio, words


def test_diarize_prints_result(tmp_path):
    audio, words = _chunk(tmp_path, "tone")
    events = tmp_path / "events.jsonl"

    result = runner.invoke(
        cli.app, ["diarize", str(audio), str(words), "--debug", "--events", str(events)]
    )

    assert result.exit_code == 0, result.stdout
    payload = json.loads(result.stdout)
    assert payload["speaker_count"] == 1
    assert payload["segments"][0]["text"] == "hello world"
    assert "debug" in payload
    record = json.loads(events.read_text(encoding="utf-8").splitlines()[0])
    assert record["stage"] == "diarize"


def test_diarize_rejects_malformed_words(tmp_path):
    audio, words = _chunk(tmp_path, "tone")
    words.write_text("{oops", encoding="utf-8")

    result = runner.invoke(cli.app, ["diarize", str(audio), str(words)])

    assert result.exit_code != 0


def test_align_runs_a_session(tmp_path):
    first = _chunk(tmp_path, "c0")
    second = _chunk(tmp_path, "c1")

    result = runner.invoke(cli.app, ["align", *map(str, first), *map(str, second)])

    assert result.exit_code == 0, result.stdout
    payload = json.loads(result.stdout)
    assert [c["chunk_index"] for c in payload["chunks"]] == [0, 1]
    assert payload["failed"] == []


def test_align_requires_pairs(tmp_path):
    audio, words = _chunk(tmp_path, "c0")

    result = runner.invoke(cli.app, ["align", str(audio), str(words), str(audio)])

    assert result.exit_code == 2


def test_align_reports_failed_chunks(tmp_path, monkeypatch):
    audio, words = _chunk(tmp_path, "c0")

    def _boom(self, audio_path, words):
        raise RuntimeError("diarizer unavailable")

    monkeypatch.setattr(cli.SpeakerDiarizer, "diarize", _boom)

    result = runner.invoke(cli.app, ["align", str(audio), str(words)])

    assert result.exit_code == 1
    assert "diarizer unavailable" in result.stdout


def test_enroll_rejects_short_take(tmp_path):
    take = tmp_path / "take.wav"
    sf.write(take, sine(1.0), SR)
    store = tmp_path / "me.json"

    result = runner.invoke(cli.app, ["enroll", str(take), "--store", str(store)])

    assert result.exit_code == 1
    assert not store.exists()


def test_match_requires_active_profile(tmp_path):
    audio, words = _chunk(tmp_path, "c0")
    store = tmp_path / "me.json"
    store.write_text("[]", encoding="utf-8")

    result = runner.invoke(cli.app, ["match", str(audio), str(words), "--store", str(store)])

    assert result.exit_code == 1


def test_match_prints_identity(tmp_path, monkeypatch):
    audio, words = _chunk(tmp_path, "c0")
    store = tmp_path / "me.json"
    store.write_text(
        json.dumps({"reference_embedding": [1.0, 0.0], "reference_centroid": {}}),
        encoding="utf-8",
    )
    monkeypatch.setattr(
        cli.SpeakerDiarizer, "diarize", lambda self, audio_path, words: DiarizationResult()
    )

    result = runner.invoke(cli.app, ["match", str(audio), str(words), "--store", str(store)])

    assert result.exit_code == 0, result.stdout
    payload = json.loads(result.stdout)
    assert payload["identity"]["decision_reason"] == "no_candidates"


def test_log_level_is_validated(tmp_path):
    audio, words = _chunk(tmp_path, "c0")

    ok = runner.invoke(cli.app, ["--log-level", "warning", "diarize", str(audio), str(words)])
    bad = runner.invoke(cli.app, ["--log-level", "chatty", "diarize", str(audio), str(words)])
    runner.invoke(cli.app, ["--log-level", "info", "diarize", str(audio), str(words)])

    assert ok.exit_code == 0, ok.stdout
    assert bad.exit_code == 2
