"""
Heart-rate estimation from a conditioned PPG waveform.

Two estimates are formed for each window:

* **Peak-based** – local maxima above ``mean + k·std``, at least
  ``peak_min_distance`` seconds apart; BPM = 60 / mean inter-beat interval.
* **Spectral** – dominant FFT frequency inside the pass band, refined by
  parabolic interpolation between neighbouring bins.

When both exist they are blended (default 0.6 peak / 0.4 spectral).  The
peak-based estimate gates the result: without two beats no heart rate is
reported.  The blended value is clamped to the age-specific band and the
reported heart rate is the median of a short history of such values.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Iterable, NamedTuple, Optional, Tuple

import numpy as np

from finger_ppg.config import ProcessorConfig, clamp_child_age, heart_rate_band

logger = logging.getLogger(__name__)


class HeartRateEstimate(NamedTuple):
    """One window's estimate, before history smoothing."""

    bpm: int
    peak_bpm: float
    spectral_bpm: Optional[float]
    peaks: np.ndarray


def find_peaks(signal: np.ndarray, min_distance: int, threshold_k: float = 0.6) -> np.ndarray:
    """
    Indices of beats in *signal*.

    A sample is a peak iff it is strictly greater than both neighbours
    and above ``mean + threshold_k * std``.  Peaks closer than
    *min_distance* samples to the previously accepted peak are skipped.
    """
    x = np.asarray(signal, dtype=np.float64)
    if x.size < 3:
        return np.array([], dtype=int)

    threshold = float(np.mean(x) + threshold_k * np.std(x))
    mid = x[1:-1]
    candidates = np.flatnonzero((mid > x[:-2]) & (mid > x[2:]) & (mid > threshold)) + 1

    peaks = []
    for idx in candidates:
        if not peaks or idx - peaks[-1] >= min_distance:
            peaks.append(int(idx))
    return np.array(peaks, dtype=int)


def bpm_from_peaks(
    peaks: np.ndarray,
    timestamps: Optional[np.ndarray] = None,
    sampling_rate: Optional[float] = None,
) -> Optional[float]:
    """
    Convert beat positions to BPM.

    Intervals are taken from *timestamps* when given, otherwise from the
    sample spacing at *sampling_rate*.  Outlier intervals (a missed or
    spurious beat) are dropped with :func:`remove_outliers` before
    averaging.  Returns *None* for fewer than two peaks.
    """
    peaks = np.asarray(peaks, dtype=int)
    if peaks.size < 2:
        return None
    if timestamps is not None:
        times = np.asarray(timestamps, dtype=np.float64)[peaks]
    elif sampling_rate:
        times = peaks / float(sampling_rate)
    else:
        raise ValueError("either timestamps or sampling_rate is required")

    intervals = remove_outliers(np.diff(times))
    if intervals.size == 0:
        return None
    mean_interval = float(np.mean(intervals))
    if mean_interval <= 0:
        return None
    return 60.0 / mean_interval


def remove_outliers(values: np.ndarray) -> np.ndarray:
    """
    Drop values outside ``[Q1 - 1.5·IQR, Q3 + 1.5·IQR]``.

    Quartiles are taken by index into the sorted values.  Fewer than
    three values are returned unchanged.
    """
    x = np.asarray(values, dtype=np.float64)
    if x.size < 3:
        return x
    ordered = np.sort(x)
    q1 = ordered[int(x.size * 0.25)]
    q3 = ordered[int(x.size * 0.75)]
    iqr = q3 - q1
    keep = (x >= q1 - 1.5 * iqr) & (x <= q3 + 1.5 * iqr)
    if not keep.all():
        logger.debug("Dropped %d outlier interval(s).", int(np.count_nonzero(~keep)))
    return x[keep]


def bpm_from_spectrum(
    signal: np.ndarray,
    sampling_rate: float,
    low_hz: float,
    high_hz: float,
    min_samples: int = 64,
) -> Optional[float]:
    """
    Dominant frequency of *signal* inside [low_hz, high_hz], in BPM.

    Returns *None* when the window is shorter than *min_samples* or the
    band holds no power.
    """
    x = np.asarray(signal, dtype=np.float64)
    n = x.size
    if n < min_samples:
        return None

    x = x - np.mean(x)
    freqs = np.fft.rfftfreq(n, d=1.0 / sampling_rate)   # Hz
    power = np.abs(np.fft.rfft(x)) ** 2

    band_mask = (freqs >= low_hz) & (freqs <= high_hz)
    if not band_mask.any():
        return None

    band_power = power[band_mask]
    band_freqs = freqs[band_mask]
    if float(band_power.sum()) <= 0.0:
        return None

    peak_idx = int(np.argmax(band_power))
    peak_freq = band_freqs[peak_idx]

    # Parabolic interpolation for sub-bin frequency resolution
    if 0 < peak_idx < len(band_power) - 1:
        alpha = band_power[peak_idx - 1]
        beta = band_power[peak_idx]
        gamma = band_power[peak_idx + 1]
        denom = alpha - 2 * beta + gamma
        if denom != 0:
            p = 0.5 * (alpha - gamma) / denom
            freq_step = band_freqs[1] - band_freqs[0]
            peak_freq = band_freqs[peak_idx] + p * freq_step

    return float(peak_freq * 60.0)


def clamp_to_age_band(bpm: float, age: int) -> float:
    """Clamp *bpm* into the physiologic band for *age* (age itself clamped to 0 – 7)."""
    low, high = heart_rate_band(clamp_child_age(age))
    return max(float(low), min(float(high), bpm))


def median_bpm(history: Iterable[int]) -> Optional[int]:
    values = list(history)
    if not values:
        return None
    return int(round(float(np.median(values))))


class HeartRateEstimator:
    """
    Per-window heart-rate estimation with a bounded smoothing history.

    :meth:`estimate` is stateless; the history only changes through
    :meth:`commit`, which the pipeline calls once a frame has been fully
    processed.
    """

    def __init__(self, config: ProcessorConfig) -> None:
        self.config = config
        self._history: Deque[int] = deque(maxlen=config.hr_history_size)

    def estimate(
        self,
        conditioned: np.ndarray,
        timestamps: Optional[np.ndarray] = None,
        age: Optional[int] = None,
    ) -> Optional[HeartRateEstimate]:
        """
        Estimate BPM from one conditioned window.

        Returns *None* when fewer than two beats are found.
        """
        cfg = self.config
        peaks = find_peaks(conditioned, cfg.peak_min_distance_samples, cfg.peak_threshold_k)
        peak_bpm = bpm_from_peaks(peaks, timestamps, cfg.sampling_rate)
        if peak_bpm is None:
            logger.debug("Only %d peak(s) found – insufficient data.", len(peaks))
            return None

        spectral_bpm = None
        if cfg.use_frequency_estimate:
            spectral_bpm = bpm_from_spectrum(
                conditioned, cfg.sampling_rate, cfg.band_low_hz, cfg.band_high_hz
            )

        if spectral_bpm is not None:
            fused = cfg.peak_weight * peak_bpm + (1.0 - cfg.peak_weight) * spectral_bpm
        else:
            fused = peak_bpm

        age = cfg.child_age if age is None else age
        bpm = int(round(clamp_to_age_band(fused, age)))
        logger.debug(
            "HR estimate: peaks=%d peak_bpm=%.1f spectral_bpm=%s -> %d",
            len(peaks), peak_bpm,
            "n/a" if spectral_bpm is None else f"{spectral_bpm:.1f}", bpm,
        )
        return HeartRateEstimate(bpm, peak_bpm, spectral_bpm, peaks)

    def preview(self, bpm: int) -> Tuple[int, ...]:
        """The history as it would be after committing *bpm*."""
        prospective = deque(self._history, maxlen=self._history.maxlen)
        prospective.append(bpm)
        return tuple(prospective)

    def commit(self, bpm: int) -> None:
        self._history.append(int(bpm))

    @property
    def history(self) -> Tuple[int, ...]:
        return tuple(self._history)

    @property
    def current(self) -> Optional[int]:
        """Median of the history, or *None* before the first estimate."""
        return median_bpm(self._history)

    def hrv(self) -> float:
        """Mean absolute change between successive history entries (0 below 5 entries)."""
        if len(self._history) < 5:
            return 0.0
        return float(np.mean(np.abs(np.diff(np.array(self._history, dtype=np.float64)))))

    def reset(self) -> None:
        self._history.clear()
