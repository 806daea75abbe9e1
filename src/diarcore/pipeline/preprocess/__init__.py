from __future__ import annotations

from .io import probe_sample_rate, read_samples, resample_linear

__all__ = ["read_samples", "resample_linear", "probe_sample_rate"]
