"""
Unit tests for SignalBuffer and the region reducer.
Run with:  pytest tests/
"""

from __future__ import annotations

import numpy as np
import pytest

from finger_ppg.buffer import Sample, SignalBuffer
from finger_ppg.region import reduce_region


def _sample(i: int, fps: float = 30.0) -> Sample:
    return Sample(timestamp=i / fps, red=150.0, green=float(i % 256), blue=60.0)


# ---------------------------------------------------------------------------
# SignalBuffer tests
# ---------------------------------------------------------------------------

class TestSignalBuffer:

    def test_never_exceeds_capacity(self):
        buf = SignalBuffer(capacity=300)
        for i in range(450):
            buf.append(_sample(i))
        assert len(buf) == 300

    def test_keeps_last_samples_in_arrival_order(self):
        buf = SignalBuffer(capacity=300)
        samples = [_sample(i) for i in range(450)]
        for s in samples:
            buf.append(s)
        assert buf.snapshot() == tuple(samples[-300:])
        np.testing.assert_allclose(buf.timestamps(), np.arange(150, 450) / 30.0)

    def test_out_of_order_sample_rejected(self):
        buf = SignalBuffer(capacity=10)
        buf.append(_sample(5))
        with pytest.raises(ValueError):
            buf.append(_sample(4))
        assert len(buf) == 1

    def test_equal_timestamps_allowed(self):
        buf = SignalBuffer(capacity=10)
        buf.append(_sample(3))
        buf.append(_sample(3))
        assert len(buf) == 2

    def test_fill_ratio_and_clear(self):
        buf = SignalBuffer(capacity=10)
        assert buf.fill_ratio == 0.0
        for i in range(5):
            buf.append(_sample(i))
        assert buf.fill_ratio == pytest.approx(0.5)
        buf.clear()
        assert len(buf) == 0
        assert buf.fill_ratio == 0.0

    def test_green_channel_column(self):
        buf = SignalBuffer(capacity=10)
        for i in range(4):
            buf.append(_sample(i))
        np.testing.assert_array_equal(buf.green(), [0.0, 1.0, 2.0, 3.0])
        assert [s.red for s in buf.snapshot()] == [150.0] * 4

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            SignalBuffer(capacity=0)


# ---------------------------------------------------------------------------
# Region reducer tests
# ---------------------------------------------------------------------------

class TestReduceRegion:

    def test_whole_frame_mean(self):
        frame = np.zeros((4, 4, 3), dtype=np.uint8)
        frame[:, :, 0] = 10    # B
        frame[:, :, 1] = 20    # G
        frame[:, :, 2] = 30    # R
        means = reduce_region(frame)
        assert means.red == pytest.approx(30.0)
        assert means.green == pytest.approx(20.0)
        assert means.blue == pytest.approx(10.0)

    def test_masked_mean_ignores_outside_pixels(self):
        frame = np.zeros((4, 4, 3), dtype=np.uint8)
        frame[:2, :, 1] = 100
        mask = np.zeros((4, 4), dtype=bool)
        mask[:2, :] = True
        means = reduce_region(frame, mask)
        assert means.green == pytest.approx(100.0)

    def test_empty_mask_returns_none(self):
        frame = np.full((4, 4, 3), 50, dtype=np.uint8)
        assert reduce_region(frame, np.zeros((4, 4), dtype=bool)) is None

    def test_empty_frame_returns_none(self):
        assert reduce_region(np.zeros((0, 0, 3), dtype=np.uint8)) is None

    def test_mask_shape_mismatch(self):
        frame = np.full((4, 4, 3), 50, dtype=np.uint8)
        with pytest.raises(ValueError):
            reduce_region(frame, np.ones((3, 3), dtype=bool))
