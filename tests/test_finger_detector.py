"""
Unit tests for FingerDetector.
Run with:  pytest tests/test_finger_detector.py
"""

from __future__ import annotations

import math

import numpy as np
import pytest

from finger_ppg.finger_detector import (
    FingerDetector,
    aspect_ratio,
    circularity,
    contour_area,
    contour_perimeter,
    skin_mask,
    to_hsv,
)

SKIN_BGR = (60, 80, 180)


def _make_frame(rects=(), size=(240, 320), colour=SKIN_BGR) -> np.ndarray:
    """Black frame with filled skin-coloured rectangles given as (x, y, w, h)."""
    frame = np.zeros((size[0], size[1], 3), dtype=np.uint8)
    for x, y, w, h in rects:
        frame[y:y + h, x:x + w] = colour
    return frame


FINGER = (130, 45, 60, 150)


# ---------------------------------------------------------------------------
# Colour and geometry helpers
# ---------------------------------------------------------------------------

class TestColourSpace:

    def test_hsv_of_primaries(self):
        frame = np.array([[[0, 0, 255], [255, 0, 0]]], dtype=np.uint8)  # red, blue
        hsv = to_hsv(frame)
        np.testing.assert_allclose(hsv[0, 0], [0, 255, 255])
        np.testing.assert_allclose(hsv[0, 1], [240, 255, 255])

    def test_skin_tone_in_mask(self):
        frame = np.array([[SKIN_BGR, (0, 0, 0), (200, 200, 200)]], dtype=np.uint8)
        mask = skin_mask(to_hsv(frame))
        assert mask.tolist() == [[True, False, False]]


class TestShapeMetrics:

    def _rect(self, w, h) -> np.ndarray:
        return np.array([[0, 0], [w, 0], [w, h], [0, h]], dtype=np.int32).reshape(-1, 1, 2)

    def test_rectangle_metrics(self):
        c = self._rect(10, 20)
        assert contour_area(c) == pytest.approx(200.0)
        assert contour_perimeter(c) == pytest.approx(60.0)
        assert aspect_ratio(c) == pytest.approx(2.0)

    def test_circularity(self):
        assert circularity(200.0, 60.0) == pytest.approx(4 * math.pi * 200 / 3600)
        assert circularity(10.0, 0.0) == 0.0

    def test_degenerate_aspect_ratio(self):
        line = np.array([[0, 0], [10, 0]], dtype=np.int32).reshape(-1, 1, 2)
        assert math.isinf(aspect_ratio(line))


# ---------------------------------------------------------------------------
# Per-frame classification
# ---------------------------------------------------------------------------

class TestFindFinger:

    def test_finger_shaped_blob_found(self):
        fd = FingerDetector()
        found = fd.find_finger(_make_frame([FINGER]))
        assert found is not None
        mask, contour = found
        x, y, w, h = FINGER
        assert mask[y:y + h, x:x + w].all()
        assert mask.sum() == w * h

    def test_black_frame_rejected(self):
        assert FingerDetector().find_finger(_make_frame()) is None

    def test_square_blob_rejected(self):
        assert FingerDetector().find_finger(_make_frame([(100, 60, 100, 100)])) is None

    def test_small_blob_rejected(self):
        assert FingerDetector().find_finger(_make_frame([(100, 60, 20, 50)])) is None

    def test_full_frame_skin_rejected(self):
        frame = np.zeros((240, 320, 3), dtype=np.uint8)
        frame[:, :] = SKIN_BGR
        assert FingerDetector().find_finger(frame) is None

    def test_non_skin_colour_rejected(self):
        frame = _make_frame([FINGER], colour=(200, 120, 40))  # bluish
        assert FingerDetector().find_finger(frame) is None

    def test_first_component_in_scan_order_wins(self):
        upper = (200, 20, 60, 150)   # starts on an earlier row, further right
        lower = (20, 60, 60, 150)
        found = FingerDetector().find_finger(_make_frame([upper, lower]))
        assert found is not None
        mask, _ = found
        assert mask[20, 200]
        assert not mask[60, 20]

    def test_component_pixel_floor_is_exclusive(self):
        mask = np.zeros((40, 40), dtype=bool)
        mask[2:12, 2:12] = True              # exactly 100 pixels
        mask[20:30, 20:30] = True
        mask[30, 20] = True                  # 101 pixels
        components = FingerDetector()._components(mask)
        assert len(components) == 1
        assert components[0].sum() == 101

    def test_find_finger_does_not_change_state(self):
        fd = FingerDetector()
        fd.find_finger(_make_frame([FINGER]))
        assert fd.consecutive_detections == 0


# ---------------------------------------------------------------------------
# Hysteresis
# ---------------------------------------------------------------------------

class TestHysteresis:

    def test_requires_consecutive_positives(self):
        fd = FingerDetector(required_detections=5)
        flags = [fd.update(True) for _ in range(5)]
        assert flags == [False, False, False, False, True]

    def test_negative_resets_streak(self):
        fd = FingerDetector(required_detections=5)
        sequence = [True] * 4 + [False] + [True] * 5
        flags = [fd.update(p) for p in sequence]
        assert flags == [False] * 9 + [True]

    def test_negative_after_detection_clears(self):
        fd = FingerDetector(required_detections=2)
        fd.update(True)
        fd.update(True)
        assert fd.detected
        fd.update(False)
        assert not fd.detected
        assert fd.consecutive_detections == 0

    def test_confidence_is_clamped_progress(self):
        fd = FingerDetector(required_detections=5)
        fd.update(True)
        fd.update(True)
        assert fd.confidence == pytest.approx(0.4)
        for _ in range(5):
            fd.update(True)
        assert fd.confidence == 1.0

    def test_detect_on_frames(self):
        fd = FingerDetector(required_detections=5)
        finger, empty = _make_frame([FINGER]), _make_frame()
        frames = [finger] * 4 + [empty] + [finger] * 5
        results = [fd.detect(f) for f in frames]
        assert [r.detected for r in results] == [False] * 9 + [True]
        assert results[4].mask is None
        assert results[-1].mask is not None
        assert results[-1].confidence == 1.0

    def test_reset(self):
        fd = FingerDetector(required_detections=1)
        fd.update(True)
        fd.reset()
        assert not fd.detected
        assert fd.consecutive_detections == 0

    def test_invalid_required(self):
        with pytest.raises(ValueError):
            FingerDetector(required_detections=0)
