"""
Signal-quality metrics and confidence scoring.

Confidence is a weighted sum of four sub-scores, each saturating at its
weight:

=====================  ======  ==========================================
sub-score              weight  saturates when
=====================  ======  ==========================================
SNR                    0.3     SNR ≥ ``snr_threshold`` dB
stability              0.3     1 − CV(heart-rate history) ≥ threshold
amplitude              0.2     waveform peak-to-peak ≥ threshold
heart-rate validity    0.2     binary: rate inside the physiologic range
=====================  ======  ==========================================
"""

from __future__ import annotations

import enum
import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)

SNR_WEIGHT = 0.3
STABILITY_WEIGHT = 0.3
AMPLITUDE_WEIGHT = 0.2
VALIDITY_WEIGHT = 0.2


class Quality(str, enum.Enum):
    COLLECTING = "collecting"
    POOR = "poor"
    FAIR = "fair"
    GOOD = "good"
    EXCELLENT = "excellent"
    ERROR = "error"


# Ladder of (inclusive lower bound, label), highest first.
QUALITY_LADDER: Tuple[Tuple[float, Quality], ...] = (
    (0.8, Quality.EXCELLENT),
    (0.6, Quality.GOOD),
    (0.4, Quality.FAIR),
)


def snr_db(signal: np.ndarray) -> float:
    """
    Signal power over high-frequency noise power, in dB.

    Signal power is the window variance; noise power is estimated as the
    mean squared first difference.  A noiseless window scores 10 dB.
    """
    x = np.asarray(signal, dtype=np.float64)
    if x.size < 2:
        return 0.0
    signal_power = float(np.var(x))
    noise_power = float(np.mean(np.diff(x) ** 2))
    if noise_power == 0.0:
        return 10.0
    if signal_power == 0.0:
        return 0.0
    return 10.0 * float(np.log10(signal_power / noise_power))


def stability(history: Sequence[float]) -> float:
    """Inverse coefficient of variation of the heart-rate history, floored at 0."""
    values = np.asarray(history, dtype=np.float64)
    if values.size == 0:
        return 0.0
    mean = float(np.mean(values))
    if mean <= 0.0:
        return 0.0
    return max(0.0, 1.0 - float(np.std(values)) / mean)


def amplitude(signal: np.ndarray) -> float:
    x = np.asarray(signal, dtype=np.float64)
    if x.size == 0:
        return 0.0
    return float(np.ptp(x))


def _saturating(value: float, threshold: float, weight: float) -> float:
    if threshold <= 0:
        return weight
    return weight * min(1.0, max(0.0, value / threshold))


def score_confidence(
    signal: np.ndarray,
    history: Sequence[float],
    heart_rate: Optional[float],
    snr_threshold: float = 3.0,
    stability_threshold: float = 0.8,
    amplitude_threshold: float = 0.1,
    valid_range: Tuple[float, float] = (60.0, 200.0),
) -> float:
    """Fuse the four sub-scores into one confidence in [0, 1]."""
    confidence = (
        _saturating(snr_db(signal), snr_threshold, SNR_WEIGHT)
        + _saturating(stability(history), stability_threshold, STABILITY_WEIGHT)
        + _saturating(amplitude(signal), amplitude_threshold, AMPLITUDE_WEIGHT)
    )
    low, high = valid_range
    if heart_rate and low <= heart_rate <= high:
        confidence += VALIDITY_WEIGHT
    return float(min(1.0, max(0.0, confidence)))


def quality_label(confidence: float) -> Quality:
    for bound, label in QUALITY_LADDER:
        if confidence >= bound:
            return label
    return Quality.POOR


def collecting_progress(samples: int, minimum: int) -> float:
    """Progress indicator shown while the buffer fills (not a trust score)."""
    if minimum <= 0:
        return 1.0
    return min(1.0, samples / minimum)


# ---------------------------------------------------------------------------
# Artifact classification
# ---------------------------------------------------------------------------

MOTION = "motion"
SATURATION = "saturation"
POOR_CONTACT = "poor_contact"


def detect_artifacts(
    raw: np.ndarray,
    motion_threshold: float = 2.0,
    saturation_threshold: float = 0.8,
    contact_threshold: float = 0.3,
    optimal_range: float = 50.0,
) -> List[str]:
    """
    Flag measurement artifacts in a raw (unconditioned) intensity window.

    * ``motion`` – the last 10 samples swing more than a steady finger would.
    * ``saturation`` – most samples sit within 5 % of the window's
      extremes (clipped or flat-lined).
    * ``poor_contact`` – the pulsatile range is too small for good contact.
    """
    x = np.asarray(raw, dtype=np.float64)
    artifacts: List[str] = []
    if x.size == 0:
        return artifacts

    if x.size >= 10 and float(np.std(x[-10:])) / 100.0 > motion_threshold:
        artifacts.append(MOTION)

    hi = float(np.max(x))
    lo = float(np.min(x))
    span = hi - lo
    if span > 0:
        clipped = np.count_nonzero(x > hi - 0.05 * span) + np.count_nonzero(x < lo + 0.05 * span)
    else:
        clipped = x.size
    if clipped / x.size > saturation_threshold:
        artifacts.append(SATURATION)

    if min(1.0, span / optimal_range) < contact_threshold:
        artifacts.append(POOR_CONTACT)

    if artifacts:
        logger.debug("Artifacts detected: %s", ", ".join(artifacts))
    return artifacts
