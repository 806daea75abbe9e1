from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import numpy as np

from ..errors import PipelineError, attach_context, coerce_stage_error
from ..preprocess.io import read_samples, resample_linear
from . import bic, segments, vad
from .clustering import cluster
from .config import DiarizationConfig
from .embeddings import embed_segments
from .features import extract_mfcc_features
from .logger import logger
from .models import (
    DiarizationResult,
    SegmentRange,
    SpeakerEmbedding,
    SpeakerFeatureVector,
    SpeakerProfile,
    SpeakerSegment,
    WordSegmentInfo,
    new_id,
)
from .voice_features import extract_features_for_windows, to_feature_vector
from .words import group_words, map_words, single_speaker_result

AudioReader = Callable[[str | Path], tuple[np.ndarray, int]]

__all__ = ["AudioReader", "SpeakerDiarizer"]


class SpeakerDiarizer:
    """Unsupervised per-chunk diarization: MFCC, VAD, BIC, AHC, smoothing.

    Every failure point degrades to a single-speaker result; ``diarize``
    does not raise for bad or insufficient input.
    """

    def __init__(
        self,
        config: DiarizationConfig | None = None,
        audio_reader: AudioReader = read_samples,
    ):
        self.config = (config or DiarizationConfig()).validate()
        self.audio_reader = audio_reader
        self._debug_payload: dict[str, Any] = {}

    def get_debug_payload(self) -> dict[str, Any]:
        """Return structured debugging information about the most recent run."""

        return dict(self._debug_payload)

    @staticmethod
    def _summarize_segments(
        speaker_segments: Sequence[SpeakerSegment], hop_sec: float
    ) -> dict[str, Any]:
        per_speaker: dict[int, dict[str, float | int]] = {}
        total = 0.0
        for seg in speaker_segments:
            duration = seg.frame_count * hop_sec
            entry = per_speaker.setdefault(seg.speaker_label, {"duration_sec": 0.0, "turns": 0})
            entry["duration_sec"] = float(entry["duration_sec"]) + duration
            entry["turns"] = int(entry["turns"]) + 1
            total += duration
        return {
            "speaker_count": len(per_speaker),
            "turn_count": len(speaker_segments),
            "total_duration_sec": round(total, 3),
            "per_speaker": {
                str(label): {
                    "duration_sec": round(float(stats["duration_sec"]), 3),
                    "turns": int(stats["turns"]),
                }
                for label, stats in sorted(per_speaker.items())
            },
        }

    def _fallback(self, words: Sequence[WordSegmentInfo], reason: str) -> DiarizationResult:
        self._debug_payload["fallback_reason"] = reason
        logger.info("[diarize] single-speaker fallback: %s", reason)
        return single_speaker_result(words)

    def diarize(
        self,
        audio_path: str | Path,
        words: Sequence[WordSegmentInfo],
    ) -> DiarizationResult:
        """Diarize the chunk at ``audio_path`` and attribute ``words`` to speakers."""

        self._debug_payload = {"input": {"path": str(audio_path), "word_count": len(words)}}
        if not words:
            return single_speaker_result(words)
        try:
            samples, sr = self.audio_reader(audio_path)
        except PipelineError as exc:
            attach_context(exc, {"path": str(audio_path)})
            self._debug_payload["error"] = dict(exc.context)
            logger.warning("Audio read failed: %s", exc)
            return self._fallback(words, "unreadable_audio")
        except (OSError, RuntimeError, ValueError) as exc:
            logger.warning("Audio read failed: %s", exc)
            return self._fallback(words, "unreadable_audio")
        return self._guarded_run(samples, sr, words)

    def diarize_samples(
        self,
        samples: np.ndarray,
        sample_rate: int,
        words: Sequence[WordSegmentInfo],
    ) -> DiarizationResult:
        self._debug_payload = {"input": {"path": None, "word_count": len(words)}}
        if not words:
            return single_speaker_result(words)
        return self._guarded_run(samples, sample_rate, words)

    def _guarded_run(
        self,
        samples: np.ndarray,
        sample_rate: int,
        words: Sequence[WordSegmentInfo],
    ) -> DiarizationResult:
        try:
            return self._run(samples, sample_rate, words)
        except (ArithmeticError, ValueError, np.linalg.LinAlgError) as exc:
            err = coerce_stage_error(
                "diarize",
                "diarization stage failed",
                context={"word_count": len(words)},
                cause=exc,
            )
            self._debug_payload["error"] = dict(err.context)
            logger.warning("%s", err)
            return self._fallback(words, "stage_error")

    def _run(
        self,
        samples: np.ndarray,
        sample_rate: int,
        words: Sequence[WordSegmentInfo],
    ) -> DiarizationResult:
        cfg = self.config
        t0 = time.perf_counter()
        wav = np.asarray(samples, dtype=np.float32).reshape(-1) if samples is not None else None
        if wav is None or wav.size == 0 or not np.all(np.isfinite(wav)):
            return self._fallback(words, "unreadable_audio")
        wav = resample_linear(wav, sample_rate, cfg.target_sr, cfg.resample_tolerance_hz)
        sr = cfg.target_sr
        self._debug_payload["input"].update(
            {"sample_rate": int(sample_rate), "duration_sec": round(wav.size / float(sr), 3)}
        )

        frames = extract_mfcc_features(wav, sr, cfg)
        self._debug_payload["features"] = {"frame_count": len(frames)}
        if frames.is_empty:
            return self._fallback(words, "empty_mfcc")

        regions = vad.detect_speech_regions(frames.rms_energies, cfg)
        speech_frames = sum(r.frame_count for r in regions)
        self._debug_payload["vad"] = {
            "region_count": len(regions),
            "speech_frames": speech_frames,
            "coverage_pct": round(100.0 * speech_frames / max(1, len(frames)), 2),
        }
        logger.info(
            "[diarize] VAD detected %d regions (%d of %d frames)",
            len(regions),
            speech_frames,
            len(frames),
        )
        if not regions:
            return self._fallback(words, "no_speech_regions")

        boundaries = bic.segment(frames.mfccs, regions, cfg)
        ranges = bic.split_regions(regions, boundaries)
        self._debug_payload["bic"] = {
            "boundary_count": len(boundaries),
            "segment_count": len(ranges),
        }
        if len(ranges) < 2:
            return self._fallback(words, "too_few_segments")

        embedded: list[tuple[SegmentRange, SpeakerEmbedding]] = [
            (rng, emb) for rng, emb in zip(ranges, embed_segments(frames, ranges)) if emb is not None
        ]
        self._debug_payload["embeddings"] = {"count": len(embedded)}
        if len(embedded) < 2:
            return self._fallback(words, "too_few_embeddings")

        clustering = cluster([emb for _, emb in embedded], cfg)
        self._debug_payload["clustering"] = {"cluster_count": clustering.cluster_count}
        logger.info(
            "[diarize] %d segments clustered into %d speakers",
            len(embedded),
            clustering.cluster_count,
        )
        if clustering.cluster_count <= 1:
            return self._fallback(words, "single_cluster")

        raw_segments = [
            SpeakerSegment(rng.start_frame, rng.end_frame, label)
            for (rng, _), label in zip(embedded, clustering.labels)
        ]
        smoothed = segments.smooth(raw_segments, cfg)
        self._debug_payload["turns"] = self._summarize_segments(smoothed, cfg.frame_hop_sec)

        labels = map_words(words, smoothed, cfg.frame_hop_sec)
        diarized = group_words(words, labels)
        speaker_count = len({seg.speaker_index for seg in diarized})
        if speaker_count <= 1:
            return self._fallback(words, "single_speaker_after_mapping")

        profiles = self._build_profiles(wav, sr, smoothed, embedded, clustering.labels)
        self._debug_payload["elapsed_sec"] = round(time.perf_counter() - t0, 3)
        logger.info(
            "[diarize] %d diarized segments, %d speakers, %d profiles",
            len(diarized),
            speaker_count,
            len(profiles),
        )
        return DiarizationResult(
            segments=diarized,
            speaker_count=speaker_count,
            speaker_profiles=profiles,
        )

    def _build_profiles(
        self,
        wav: np.ndarray,
        sr: int,
        smoothed: Sequence[SpeakerSegment],
        embedded: Sequence[tuple[SegmentRange, SpeakerEmbedding]],
        labels: Sequence[int],
    ) -> list[SpeakerProfile]:
        cfg = self.config
        hop_sec = cfg.frame_hop_sec
        profiles: list[SpeakerProfile] = []
        for label in sorted({seg.speaker_label for seg in smoothed}):
            members = [emb for (_, emb), lab in zip(embedded, labels) if lab == label]
            windows = [
                (seg.start_frame * hop_sec, seg.frame_count * hop_sec)
                for seg in smoothed
                if seg.speaker_label == label
            ]
            vectors = [
                vec
                for vec in (
                    to_feature_vector(feat)
                    for feat in extract_features_for_windows(wav, sr, windows, cfg)
                    if not feat.is_empty
                )
                if vec is not None
            ]
            centroid = SpeakerFeatureVector.centroid(vectors) or SpeakerFeatureVector.zero()
            profiles.append(
                SpeakerProfile(
                    id=new_id(),
                    speaker_index=int(label),
                    centroid=centroid,
                    sample_count=len(members),
                    embedding=SpeakerEmbedding.centroid(members),
                )
            )
        return profiles
