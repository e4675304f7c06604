"""
Empirical blood-pressure estimate from PPG waveform shape.

This is a rough heuristic, not a calibrated measurement.  Systolic
pressure starts from a 100 mmHg baseline and is nudged by heart rate,
pulse amplitude and age; diastolic pressure is a fraction of systolic
drawn from a small random band (0.60 – 0.70).  Both are then corrected
by +2 mmHg per °C above 37 °C (and lowered symmetrically below).

The random ratio makes identical inputs give slightly different
outputs.  Pass a seeded :class:`numpy.random.Generator` to pin it.
"""

from __future__ import annotations

import logging
from typing import NamedTuple, Optional

import numpy as np
from scipy.stats import kurtosis, skew

logger = logging.getLogger(__name__)

BASELINE_SYSTOLIC = 100.0
SYSTOLIC_RANGE = (70.0, 140.0)
DIASTOLIC_RATIO = 0.65
DIASTOLIC_RATIO_SPREAD = 0.1
REFERENCE_TEMPERATURE = 37.0
MMHG_PER_DEGREE = 2.0


class BloodPressure(NamedTuple):
    systolic: int
    diastolic: int


class PulseFeatures(NamedTuple):
    amplitude: float
    mean: float
    variance: float
    peak_to_peak: float
    skewness: float
    kurtosis: float


def pulse_features(signal: np.ndarray) -> PulseFeatures:
    """Shape statistics of a conditioned waveform window."""
    x = np.asarray(signal, dtype=np.float64)
    if x.size == 0:
        return PulseFeatures(0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    mean = float(np.mean(x))
    variance = float(np.var(x))
    std = float(np.sqrt(variance))
    # Bias-corrected estimators need a non-constant window of 4+ samples.
    if std == 0.0 or x.size < 4:
        skewness = kurt = 0.0
    else:
        skewness = float(skew(x, bias=False))
        kurt = float(kurtosis(x, fisher=True, bias=False))

    return PulseFeatures(
        amplitude=std,
        mean=mean,
        variance=variance,
        peak_to_peak=float(np.ptp(x)),
        skewness=skewness,
        kurtosis=kurt,
    )


def age_adjustment(age: int) -> float:
    """Systolic offset in mmHg; younger children subtract more."""
    if age <= 1:
        return -20.0
    if age <= 3:
        return -15.0
    if age <= 5:
        return -10.0
    if age <= 7:
        return -5.0
    return 0.0


def systolic_estimate(features: PulseFeatures, heart_rate: float, age: int) -> float:
    systolic = BASELINE_SYSTOLIC

    if heart_rate > 100:
        systolic += (heart_rate - 100) * 0.3
    elif heart_rate < 70:
        systolic -= (70 - heart_rate) * 0.2

    if features.amplitude > 0.3:
        systolic += 10.0
    elif features.amplitude < 0.1:
        systolic -= 5.0

    systolic += age_adjustment(age)

    low, high = SYSTOLIC_RANGE
    return max(low, min(high, systolic))


def temperature_compensation(value: float, temperature: float) -> float:
    return value + (temperature - REFERENCE_TEMPERATURE) * MMHG_PER_DEGREE


class BloodPressureEstimator:
    """
    Parameters
    ----------
    rng:
        Source of the diastolic ratio jitter.  Defaults to an unseeded
        generator; tests pass ``np.random.default_rng(seed)``.
    """

    def __init__(self, rng: Optional[np.random.Generator] = None) -> None:
        self.rng = rng if rng is not None else np.random.default_rng()

    def diastolic_ratio(self) -> float:
        return DIASTOLIC_RATIO + (float(self.rng.random()) - 0.5) * DIASTOLIC_RATIO_SPREAD

    def estimate(
        self,
        signal: np.ndarray,
        heart_rate: Optional[float],
        age: int,
        temperature: float,
    ) -> Optional[BloodPressure]:
        """
        Estimate blood pressure for one conditioned window.

        Returns *None* when there is no valid heart rate.
        """
        if not heart_rate:
            return None

        features = pulse_features(signal)
        systolic = systolic_estimate(features, heart_rate, age)
        diastolic = float(round(systolic * self.diastolic_ratio()))

        result = BloodPressure(
            systolic=int(round(temperature_compensation(systolic, temperature))),
            diastolic=int(round(temperature_compensation(diastolic, temperature))),
        )
        logger.debug(
            "BP estimate: amplitude=%.3f hr=%.0f age=%d temp=%.1f -> %d/%d",
            features.amplitude, heart_rate, age, temperature,
            result.systolic, result.diastolic,
        )
        return result
