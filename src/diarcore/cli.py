"""Command line interface for the diarcore speaker diarization core."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, NoReturn

import typer

from .io.session_manager import ChunkJob, ChunkQueue, DiarizationSession, JobStatus
from .pipeline.diarization.enrollment import analyze_enrollment_sample, build_enrollment_profile
from .pipeline.diarization.logger import set_verbosity
from .pipeline.diarization.models import WordSegmentInfo, new_id
from .pipeline.diarization.pipeline import SpeakerDiarizer
from .pipeline.diarization.registry import JsonEnrollmentStore
from .pipeline.errors import PipelineError
from .pipeline.logging_utils import EventLog, _make_json_safe
from .pipeline.preprocess.io import read_samples

app = typer.Typer(help="Unsupervised speaker diarization for transcribed audio chunks.")


@app.callback()
def main(
    log_level: str = typer.Option("INFO", "--log-level", help="DEBUG, INFO, WARNING or ERROR"),
):
    """Configure package logging before any command runs."""

    try:
        set_verbosity(log_level)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--log-level") from exc


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(_make_json_safe(payload), indent=2, ensure_ascii=False))


def _load_words(path: Path) -> list[WordSegmentInfo]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise typer.BadParameter(f"Word file '{path}' is not valid JSON: {exc}") from exc
    if isinstance(data, dict):
        data = data.get("words", [])
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise typer.BadParameter(f"Word file '{path}' must contain a list of word objects.")
    return [WordSegmentInfo.from_dict(item) for item in data]


def _event_log(events: Path | None, session_id: str) -> EventLog | None:
    return EventLog(session_id, events) if events is not None else None


def _fail(message: str, exc: Exception) -> NoReturn:
    typer.secho(f"{message}: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


@app.command(help="Diarize one audio chunk against its recognized words.")
def diarize(
    audio: Path = typer.Argument(..., exists=True, readable=True, help="Chunk audio file"),
    words_json: Path = typer.Argument(..., exists=True, readable=True, help="Word timings JSON"),
    events: Path | None = typer.Option(None, help="Append JSONL stage events to this file"),
    debug: bool = typer.Option(False, "--debug", help="Include stage diagnostics", is_flag=True),
):
    words = _load_words(words_json)
    diarizer = SpeakerDiarizer()
    result = diarizer.diarize(audio, words)
    payload: dict[str, Any] = result.to_dict()
    if debug:
        payload["debug"] = diarizer.get_debug_payload()
    log = _event_log(events, new_id())
    if log is not None:
        log.event("diarize", "result", path=str(audio), **diarizer.get_debug_payload())
    _echo_json(payload)


@app.command(help="Run a session over AUDIO WORDS_JSON pairs and print the global speaker map.")
def align(
    chunks: list[Path] = typer.Argument(
        ..., exists=True, readable=True, help="Alternating audio and word-timing files"
    ),
    events: Path | None = typer.Option(None, help="Append JSONL stage events to this file"),
):
    if len(chunks) % 2:
        raise typer.BadParameter("Chunks must be given as AUDIO WORDS_JSON pairs.")
    session = DiarizationSession(event_log=_event_log(events, new_id()))
    queue = ChunkQueue.for_session(session)
    jobs = [
        queue.enqueue(ChunkJob(chunk_index=idx, audio_path=audio, words=_load_words(words)))
        for idx, (audio, words) in enumerate(zip(chunks[0::2], chunks[1::2]))
    ]
    queue.drain()
    failed = [job for job in jobs if job.status is JobStatus.FAILED]
    _echo_json(
        {
            "session_id": session.session_id,
            "chunks": [job.outcome.to_dict() for job in jobs if job.outcome is not None],
            "failed": [job.to_dict() for job in failed],
            "alignment_map": session.alignment_map,
            "global_profiles": session.global_profiles,
        }
    )
    if failed:
        raise typer.Exit(code=1)


@app.command(help="Build and store an enrollment profile from recorded takes.")
def enroll(
    takes: list[Path] = typer.Argument(..., exists=True, readable=True, help="Enrollment takes"),
    store: Path = typer.Option(..., help="Enrollment profile JSON file"),
    name: str = typer.Option("Me", help="Display name for the enrolled speaker"),
):
    samples = []
    for take in takes:
        try:
            y, sr = read_samples(take)
            samples.append(analyze_enrollment_sample(y, sr))
        except PipelineError as exc:
            _fail(f"Enrollment take '{take}' rejected", exc)
    try:
        profile = build_enrollment_profile(samples, JsonEnrollmentStore(store), display_name=name)
    except PipelineError as exc:
        _fail("Enrollment failed", exc)
    _echo_json(
        {
            "takes": [s.quality.to_dict() for s in samples],
            "profile": {
                "id": profile.id,
                "display_name": profile.display_name,
                "version": profile.version,
                "quality_stats": profile.quality_stats.to_dict(),
            },
        }
    )


@app.command(help="Diarize one chunk and identify the enrolled speaker in it.")
def match(
    audio: Path = typer.Argument(..., exists=True, readable=True, help="Chunk audio file"),
    words_json: Path = typer.Argument(..., exists=True, readable=True, help="Word timings JSON"),
    store: Path = typer.Option(..., exists=True, readable=True, help="Enrollment profile JSON"),
    events: Path | None = typer.Option(None, help="Append JSONL stage events to this file"),
):
    enrollment_store = JsonEnrollmentStore(store)
    if enrollment_store.load_active_profile() is None:
        typer.secho(f"No active enrollment profile in {store}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    session = DiarizationSession(
        enrollment_store=enrollment_store,
        event_log=_event_log(events, new_id()),
    )
    outcome = session.process_chunk(0, audio, _load_words(words_json))
    _echo_json(outcome.to_dict())


if __name__ == "__main__":  # pragma: no cover
    app()


__all__ = ["app"]
