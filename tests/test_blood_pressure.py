"""
Unit tests for the empirical blood-pressure estimator.
Run with:  pytest tests/test_blood_pressure.py

The diastolic ratio is randomised; every test that looks at diastolic
values pins the generator with a seed.
"""

from __future__ import annotations

import numpy as np
import pytest

from finger_ppg.blood_pressure import (
    BloodPressureEstimator,
    PulseFeatures,
    age_adjustment,
    pulse_features,
    systolic_estimate,
    temperature_compensation,
)


def _features(amplitude: float = 0.2) -> PulseFeatures:
    return PulseFeatures(amplitude, 0.0, 0.0, 0.0, 0.0, 0.0)


def _conditioned(n: int = 300) -> np.ndarray:
    t = np.arange(n) / 30.0
    return 0.5 + 0.5 * np.sin(2 * np.pi * 1.5 * t + 0.3)


class TestPulseFeatures:

    def test_constant_window(self):
        f = pulse_features(np.full(50, 0.5))
        assert f.amplitude == 0.0
        assert f.peak_to_peak == 0.0
        assert f.skewness == 0.0
        assert f.kurtosis == 0.0

    def test_sine_window(self):
        f = pulse_features(_conditioned())
        assert f.amplitude == pytest.approx(0.5 / np.sqrt(2), rel=0.02)
        assert f.peak_to_peak == pytest.approx(1.0, abs=0.01)
        assert f.skewness == pytest.approx(0.0, abs=0.05)
        # A sine is platykurtic (excess kurtosis −1.5).
        assert f.kurtosis == pytest.approx(-1.5, abs=0.1)

    def test_adjusted_estimators_on_skewed_window(self):
        rng = np.random.default_rng(42)
        x = rng.exponential(size=200)
        n = x.size
        d = x - x.mean()
        m2, m3, m4 = (np.mean(d ** k) for k in (2, 3, 4))
        g1 = m3 / m2 ** 1.5
        g2 = m4 / m2 ** 2 - 3.0
        expected_skew = np.sqrt(n * (n - 1)) / (n - 2) * g1
        expected_kurt = (n - 1) / ((n - 2) * (n - 3)) * ((n + 1) * g2 + 6.0)
        f = pulse_features(x)
        assert f.skewness == pytest.approx(expected_skew)
        assert f.kurtosis == pytest.approx(expected_kurt)
        assert f.skewness > 1.0

    def test_short_window_has_no_shape_statistics(self):
        f = pulse_features(np.array([0.1, 0.9, 0.3]))
        assert f.skewness == 0.0
        assert f.kurtosis == 0.0
        assert f.peak_to_peak == pytest.approx(0.8)

    def test_empty_window(self):
        assert pulse_features(np.array([])).amplitude == 0.0


class TestSystolic:

    def test_baseline(self):
        assert systolic_estimate(_features(), heart_rate=80, age=8) == 100.0

    def test_heart_rate_adjustment(self):
        assert systolic_estimate(_features(), heart_rate=120, age=8) == pytest.approx(106.0)
        assert systolic_estimate(_features(), heart_rate=60, age=8) == pytest.approx(98.0)

    def test_amplitude_adjustment(self):
        assert systolic_estimate(_features(0.35), heart_rate=80, age=8) == 110.0
        assert systolic_estimate(_features(0.05), heart_rate=80, age=8) == 95.0

    @pytest.mark.parametrize("age,offset", [(0, -20), (1, -20), (3, -15), (5, -10), (7, -5), (9, 0)])
    def test_age_adjustment(self, age, offset):
        assert age_adjustment(age) == offset

    def test_clamped(self):
        assert systolic_estimate(_features(0.35), heart_rate=300, age=8) == 140.0
        assert systolic_estimate(_features(0.05), heart_rate=0, age=0) == 70.0

    def test_temperature_compensation_is_symmetric(self):
        assert temperature_compensation(100.0, 38.0) == 102.0
        assert temperature_compensation(100.0, 36.0) == 98.0


class TestBloodPressureEstimator:

    def test_requires_heart_rate(self):
        est = BloodPressureEstimator(np.random.default_rng(1))
        assert est.estimate(_conditioned(), None, age=5, temperature=37.0) is None
        assert est.estimate(_conditioned(), 0, age=5, temperature=37.0) is None

    def test_seeded_generator_is_reproducible(self):
        a = BloodPressureEstimator(np.random.default_rng(7))
        b = BloodPressureEstimator(np.random.default_rng(7))
        for _ in range(5):
            assert a.estimate(_conditioned(), 90, 5, 37.0) == b.estimate(_conditioned(), 90, 5, 37.0)

    def test_diastolic_ratio_band(self):
        est = BloodPressureEstimator(np.random.default_rng(3))
        for _ in range(200):
            assert 0.6 <= est.diastolic_ratio() <= 0.7

    def test_estimate_values(self):
        est = BloodPressureEstimator(np.random.default_rng(11))
        bp = est.estimate(_conditioned(), 90, age=5, temperature=37.0)
        # amplitude ≈ 0.35 → +10, age 5 → −10
        assert bp.systolic == 100
        assert 59 <= bp.diastolic <= 71

    def test_temperature_shifts_both_values(self):
        cool = BloodPressureEstimator(np.random.default_rng(5)).estimate(_conditioned(), 90, 5, 37.0)
        warm = BloodPressureEstimator(np.random.default_rng(5)).estimate(_conditioned(), 90, 5, 39.0)
        assert warm.systolic == cool.systolic + 4
        assert warm.diastolic == cool.diastolic + 4
