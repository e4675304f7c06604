"""
PPG signal conditioning.

Algorithm
---------
1. Remove the DC component (window mean).
2. Apply a Butterworth bandpass filter (default: 0.8 – 3.0 Hz = 48 – 180 BPM),
   forward-backward so beat timing is not shifted.
3. Smooth with a Savitzky–Golay filter, leaving the edge samples as they are.
4. Rescale to [0, 1] using the window's own min/max.
"""

from __future__ import annotations

import logging
from typing import List, NamedTuple

import numpy as np
from scipy.signal import butter, savgol_filter, sosfiltfilt

from finger_ppg.config import ProcessorConfig

logger = logging.getLogger(__name__)


class DisplayPoint(NamedTuple):
    x: int
    y: float
    timestamp: float


def remove_dc(signal: np.ndarray) -> np.ndarray:
    """Subtract the arithmetic mean."""
    x = np.asarray(signal, dtype=np.float64)
    if x.size == 0:
        return x.copy()
    return x - np.mean(x)


def build_bandpass(
    sampling_rate: float,
    low_hz: float,
    high_hz: float,
    order: int = 4,
) -> np.ndarray:
    """Construct a Butterworth bandpass filter (SOS form)."""
    nyq = sampling_rate / 2.0
    low = low_hz / nyq
    high = high_hz / nyq
    # Clamp to valid range
    low = max(1e-4, min(low, 0.999))
    high = max(low + 1e-4, min(high, 0.999))
    return butter(order, [low, high], btype="bandpass", output="sos")


def bandpass(signal: np.ndarray, sos: np.ndarray) -> np.ndarray:
    """
    Zero-phase bandpass of *signal*.

    Windows shorter than the filter's edge padding are returned
    unfiltered.
    """
    x = np.asarray(signal, dtype=np.float64)
    # sosfiltfilt's default padlen
    padlen = 3 * (2 * len(sos) + 1 - min((sos[:, 2] == 0).sum(), (sos[:, 5] == 0).sum()))
    if x.size <= padlen:
        logger.debug("Window of %d samples too short to filter (padlen=%d).", x.size, padlen)
        return x.copy()
    return sosfiltfilt(sos, x)


def smooth(signal: np.ndarray, window: int = 5, order: int = 2) -> np.ndarray:
    """
    Savitzky–Golay smoothing.

    The first and last ``window // 2`` samples are copied unchanged.
    """
    x = np.asarray(signal, dtype=np.float64)
    if x.size < window:
        return x.copy()
    out = savgol_filter(x, window, order)
    half = window // 2
    if half:
        out[:half] = x[:half]
        out[-half:] = x[-half:]
    return out


def normalize(signal: np.ndarray, symmetric: bool = False) -> np.ndarray:
    """
    Rescale *signal* to [0, 1] (or [-1, 1] when *symmetric*).

    A constant window has no shape to preserve and maps to the mid-value.
    """
    x = np.asarray(signal, dtype=np.float64)
    if x.size == 0:
        return x.copy()
    lo = float(np.min(x))
    hi = float(np.max(x))
    if hi == lo:
        return np.full_like(x, 0.0 if symmetric else 0.5)
    unit = (x - lo) / (hi - lo)
    if symmetric:
        return (unit - 0.5) * 2.0
    return unit


class SignalConditioner:
    """
    DC removal, bandpass, smoothing and normalisation as one stage.

    Parameters
    ----------
    config:
        Supplies sampling rate, pass band, filter order and smoother
        parameters.
    """

    def __init__(self, config: ProcessorConfig) -> None:
        self.config = config
        # Pre-build the bandpass filter (second-order sections)
        self._sos = build_bandpass(
            config.sampling_rate,
            config.band_low_hz,
            config.band_high_hz,
            config.filter_order,
        )

    def condition(self, signal: np.ndarray) -> np.ndarray:
        """Return the conditioned waveform, normalised to [0, 1]."""
        processed = remove_dc(signal)
        processed = bandpass(processed, self._sos)
        processed = smooth(processed, self.config.smoothing_window, self.config.smoothing_order)
        return normalize(processed)

    def display_points(self, conditioned: np.ndarray, timestamps: np.ndarray) -> List[DisplayPoint]:
        """
        The most recent ``display_length`` samples of *conditioned*,
        rescaled to [-1, 1], as plot points.
        """
        n = min(self.config.display_length, len(conditioned))
        if n == 0:
            return []
        recent = normalize(conditioned[-n:], symmetric=True)
        stamps = np.asarray(timestamps, dtype=np.float64)[-n:]
        return [
            DisplayPoint(x=i, y=float(y), timestamp=float(t))
            for i, (y, t) in enumerate(zip(recent, stamps))
        ]
