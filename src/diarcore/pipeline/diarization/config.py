from __future__ import annotations

from dataclasses import dataclass

from ..errors import ConfigurationError


@dataclass
class DiarizationConfig:
    target_sr: int = 16000
    # Resampling is skipped when the source rate is within this many Hz.
    resample_tolerance_hz: float = 1.0
    # MFCC front end
    frame_length: int = 400
    frame_hop: int = 160
    fft_size: int = 512
    n_mels: int = 26
    n_mfcc: int = 13
    pre_emphasis: float = 0.97
    mel_floor: float = 1e-10
    delta_width: int = 2
    # Energy VAD
    vad_energy_percentile: float = 0.30
    vad_threshold_ratio: float = 0.40
    vad_close_kernel: int = 30
    vad_open_kernel: int = 20
    # BIC change-point search
    bic_penalty_lambda: float = 1.5
    bic_min_window_frames: int = 100
    bic_window_growth_frames: int = 50
    bic_candidate_stride: int = 10
    bic_min_margin_frames: int = 30
    covariance_regularization: float = 1e-6
    # Agglomerative clustering
    max_clusters: int = 10
    max_distance_threshold: float = 0.60
    # Turn smoothing, in milliseconds
    min_segment_ms: int = 500
    collar_ms: int = 300
    isolated_turn_ms: int = 1000
    # Legacy voice features
    legacy_frame_size: int = 1024
    legacy_frame_hop: int = 512
    legacy_min_pitch_hz: float = 50.0
    legacy_max_pitch_hz: float = 500.0

    @property
    def frame_hop_ms(self) -> int:
        return max(1, int(round(self.frame_hop * 1000 / self.target_sr)))

    @property
    def frame_hop_sec(self) -> float:
        return self.frame_hop / float(self.target_sr)

    def validate(self) -> DiarizationConfig:
        problems: dict[str, int] = {}
        for name in ("target_sr", "frame_length", "frame_hop", "fft_size", "n_mels", "n_mfcc"):
            value = int(getattr(self, name))
            if value <= 0:
                problems[name] = value
        if self.fft_size < self.frame_length:
            problems["fft_size"] = self.fft_size
        if self.n_mfcc > self.n_mels:
            problems["n_mfcc"] = self.n_mfcc
        if problems:
            raise ConfigurationError(
                message="invalid diarization configuration",
                context={"invalid_fields": problems},
            )
        return self


@dataclass
class AlignmentConfig:
    embedding_distance_threshold: float = 0.40
    legacy_distance_threshold: float = 2.0


@dataclass
class IdentityMatchConfig:
    embedding_accept_threshold: float = 0.30
    embedding_review_threshold: float = 0.40
    embedding_adapt_threshold: float = 0.22
    legacy_accept_threshold: float = 1.30
    legacy_review_threshold: float = 2.00
    legacy_adapt_threshold: float = 0.90
    adaptation_alpha: float = 0.20
    min_alpha: float = 0.01
    max_alpha: float = 0.80


@dataclass
class EnrollmentConfig:
    min_duration_sec: float = 4.5
    max_duration_sec: float = 15.0
    min_snr_db: float = 8.0
    min_speech_ratio: float = 0.45
    max_speech_ratio: float = 0.98
    max_clipping_ratio: float = 0.02
    clipping_level: float = 0.98
    min_speech_frames: int = 12
    # Outlier trimming only kicks in from this many samples upwards.
    outlier_min_samples: int = 6
    outlier_fraction: float = 0.10


__all__ = [
    "DiarizationConfig",
    "AlignmentConfig",
    "IdentityMatchConfig",
    "EnrollmentConfig",
]
