"""
Processor configuration.

All tunable constants of the pipeline live in :class:`ProcessorConfig`.
Structural parameters (rates, buffer sizes, filter band) are validated
on construction; the two per-session compensation parameters,
``temperature`` and ``child_age``, are silently clamped into their
domains instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

TEMPERATURE_RANGE: Tuple[float, float] = (35.0, 42.0)
CHILD_AGE_RANGE: Tuple[int, int] = (0, 7)

# (max age in years, min BPM, max BPM); ages above the last bucket use
# the adult band.
AGE_HEART_RATE_BANDS: Tuple[Tuple[int, int, int], ...] = (
    (1, 100, 160),
    (3, 80, 140),
    (5, 70, 120),
    (7, 65, 110),
)
ADULT_HEART_RATE_BAND: Tuple[int, int] = (60, 100)


def clamp_temperature(temperature: float) -> float:
    """Clamp a body temperature (°C) into the supported range."""
    low, high = TEMPERATURE_RANGE
    return max(low, min(high, float(temperature)))


def clamp_child_age(age: int) -> int:
    """Clamp an age in years into the supported range."""
    low, high = CHILD_AGE_RANGE
    return max(low, min(high, int(age)))


def heart_rate_band(age: int) -> Tuple[int, int]:
    """Return the ``(min_bpm, max_bpm)`` band for *age* in years."""
    for max_age, low, high in AGE_HEART_RATE_BANDS:
        if age <= max_age:
            return low, high
    return ADULT_HEART_RATE_BAND


@dataclass(frozen=True)
class ProcessorConfig:
    """
    Immutable pipeline configuration.

    Parameters
    ----------
    sampling_rate:
        Nominal frame rate of the sampler in Hz.
    buffer_capacity:
        Number of samples kept in the sliding window (300 ≈ 10 s at 30 Hz).
    min_valid_samples:
        Samples required before any estimate is attempted.
    band_low_hz, band_high_hz:
        Pass band of the heart-rate filter (0.8 – 3.0 Hz = 48 – 180 BPM).
    filter_order:
        Butterworth order of the bandpass filter.
    smoothing_window, smoothing_order:
        Savitzky–Golay smoother parameters.
    min_frame_interval:
        Frames arriving sooner than this (seconds) after the last
        accepted frame are dropped.
    peak_min_distance:
        Minimum time between two detected beats, in seconds.
    peak_threshold_k:
        Peak threshold is ``mean + k * std`` of the conditioned window.
    use_frequency_estimate, peak_weight:
        Fuse the peak-interval estimate with the spectral estimate using
        ``peak_weight`` and ``1 - peak_weight``.
    hr_history_size, bp_history_size:
        Capacity of the heart-rate and blood-pressure histories.
    display_length:
        Number of waveform points returned for display.
    snr_threshold, stability_threshold, amplitude_threshold:
        Saturation points of the confidence sub-scores.
    valid_hr_range:
        Physiologic heart-rate range used by the validity sub-score.
    temperature:
        Body temperature in °C, clamped to [35, 42].
    child_age:
        Age in years, clamped to [0, 7].
    """

    sampling_rate: float = 30.0
    buffer_capacity: int = 300
    min_valid_samples: int = 90
    band_low_hz: float = 0.8
    band_high_hz: float = 3.0
    filter_order: int = 4
    smoothing_window: int = 5
    smoothing_order: int = 2
    min_frame_interval: float = 0.033
    peak_min_distance: float = 0.4
    peak_threshold_k: float = 0.6
    use_frequency_estimate: bool = True
    peak_weight: float = 0.6
    hr_history_size: int = 10
    bp_history_size: int = 5
    display_length: int = 60
    snr_threshold: float = 3.0
    stability_threshold: float = 0.8
    amplitude_threshold: float = 0.1
    valid_hr_range: Tuple[float, float] = (60.0, 200.0)
    temperature: float = 37.0
    child_age: int = 5

    def __post_init__(self) -> None:
        if self.sampling_rate <= 0:
            raise ValueError(f"sampling_rate must be positive, got {self.sampling_rate}")
        if self.min_valid_samples < 1:
            raise ValueError("min_valid_samples must be at least 1")
        if self.buffer_capacity < self.min_valid_samples:
            raise ValueError(
                f"buffer_capacity ({self.buffer_capacity}) must be >= "
                f"min_valid_samples ({self.min_valid_samples})"
            )
        if not 0 < self.band_low_hz < self.band_high_hz:
            raise ValueError(
                f"invalid pass band {self.band_low_hz}–{self.band_high_hz} Hz"
            )
        if self.band_high_hz >= self.sampling_rate / 2.0:
            raise ValueError("band_high_hz must be below the Nyquist frequency")
        if self.smoothing_window % 2 == 0 or self.smoothing_window <= self.smoothing_order:
            raise ValueError("smoothing_window must be odd and larger than smoothing_order")
        if not 0.0 <= self.peak_weight <= 1.0:
            raise ValueError("peak_weight must lie in [0, 1]")
        if self.hr_history_size < 1 or self.bp_history_size < 1:
            raise ValueError("history sizes must be at least 1")

        # Frozen dataclass: bypass __setattr__ to store the clamped values.
        object.__setattr__(self, "temperature", clamp_temperature(self.temperature))
        object.__setattr__(self, "child_age", clamp_child_age(self.child_age))

    @property
    def peak_min_distance_samples(self) -> int:
        """Minimum beat spacing expressed in samples."""
        return max(1, int(self.sampling_rate * self.peak_min_distance))
