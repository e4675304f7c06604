"""
Finger-on-lens detector.

A fingertip held against the lens shows up as a skin-toned, elongated
blob.  Each frame is classified with a purely heuristic pipeline:

1. Convert to HSV (hue in degrees, saturation/value on 0 – 255).
2. Mark pixels falling inside any of the configured skin-tone bands.
3. Split the mask into 4-connected components and drop small ones.
4. Measure each component's outline (area, perimeter, aspect ratio,
   circularity) and accept the first one, in row-major scan order, whose
   shape looks like a finger.

A per-frame positive only counts once it has been seen ``required``
times in a row; a single negative frame resets the streak.  This
hysteresis suppresses flicker when the finger is placed or lifted.
"""

from __future__ import annotations

import logging
import math
from typing import List, NamedTuple, Optional, Sequence, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class SkinRange(NamedTuple):
    """Inclusive HSV band: hue in degrees, saturation and value on 0 – 255."""

    lower: Tuple[float, float, float]
    upper: Tuple[float, float, float]


DEFAULT_SKIN_RANGES: Tuple[SkinRange, ...] = (
    SkinRange((0, 20, 70), (20, 255, 255)),   # light
    SkinRange((0, 30, 60), (25, 255, 255)),   # medium
    SkinRange((0, 40, 50), (30, 255, 255)),   # dark
)


class ShapeMetrics(NamedTuple):
    area: float
    perimeter: float
    aspect_ratio: float
    circularity: float


class FingerDetection(NamedTuple):
    """
    Outcome of :meth:`FingerDetector.detect` for one frame.

    ``mask`` and ``contour`` describe the component accepted on this
    frame (if any), even while the hysteresis has not yet confirmed the
    finger.
    """

    detected: bool
    confidence: float
    mask: Optional[np.ndarray]
    contour: Optional[np.ndarray]


# ---------------------------------------------------------------------------
# Geometry helpers
# ---------------------------------------------------------------------------

def to_hsv(frame: np.ndarray) -> np.ndarray:
    """
    Convert a BGR uint8 frame to HSV.

    Returns a float array with hue in degrees [0, 360) and saturation and
    value rounded on a 0 – 255 scale.
    """
    bgr = np.ascontiguousarray(frame[:, :, :3], dtype=np.float32) / 255.0
    # Float input keeps full hue resolution (degrees, not OpenCV's 0 – 179).
    hsv = cv2.cvtColor(bgr, cv2.COLOR_BGR2HSV)
    hsv[:, :, 1:] *= 255.0
    return np.round(hsv)


def skin_mask(hsv: np.ndarray, ranges: Sequence[SkinRange] = DEFAULT_SKIN_RANGES) -> np.ndarray:
    """Boolean mask of pixels inside any of *ranges*."""
    mask = np.zeros(hsv.shape[:2], dtype=bool)
    for lower, upper in ranges:
        inside = np.all((hsv >= np.asarray(lower)) & (hsv <= np.asarray(upper)), axis=2)
        mask |= inside
    return mask


def contour_area(contour: np.ndarray) -> float:
    """Shoelace area of the closed polygon *contour*."""
    return float(cv2.contourArea(contour))


def contour_perimeter(contour: np.ndarray) -> float:
    """Sum of Euclidean distances between consecutive points, closed."""
    return float(cv2.arcLength(contour, True))


def aspect_ratio(contour: np.ndarray) -> float:
    """Longer bounding-box side over the shorter one (``inf`` for a line)."""
    pts = contour.reshape(-1, 2)
    width = float(pts[:, 0].max() - pts[:, 0].min())
    height = float(pts[:, 1].max() - pts[:, 1].min())
    shorter, longer = sorted((width, height))
    if shorter == 0:
        return math.inf
    return longer / shorter


def circularity(area: float, perimeter: float) -> float:
    """``4π·area / perimeter²`` – 1.0 for a circle, smaller for elongated shapes."""
    if perimeter == 0:
        return 0.0
    return 4.0 * math.pi * area / (perimeter * perimeter)


def shape_metrics(contour: np.ndarray) -> ShapeMetrics:
    area = contour_area(contour)
    perimeter = contour_perimeter(contour)
    return ShapeMetrics(
        area=area,
        perimeter=perimeter,
        aspect_ratio=aspect_ratio(contour),
        circularity=circularity(area, perimeter),
    )


# ---------------------------------------------------------------------------
# Detector
# ---------------------------------------------------------------------------

class FingerDetector:
    """
    Heuristic detector: is a finger held over the lens?

    Parameters
    ----------
    skin_ranges:
        HSV bands considered skin-like.
    min_component_pixels:
        Connected components of this many pixels or fewer are ignored.
    min_area, max_area:
        Accepted outline area band, in pixels².
    aspect_range:
        Exclusive bounds on the bounding-box aspect ratio.
    max_circularity:
        Components at least this round are rejected.
    max_perimeter_ratio:
        Upper bound on ``perimeter / area`` (rejects ragged noise blobs).
    required_detections:
        Consecutive positive frames needed before ``detected`` is set.
    """

    def __init__(
        self,
        skin_ranges: Sequence[SkinRange] = DEFAULT_SKIN_RANGES,
        min_component_pixels: int = 100,
        min_area: float = 5000.0,
        max_area: float = 50000.0,
        aspect_range: Tuple[float, float] = (1.5, 4.0),
        max_circularity: float = 0.8,
        max_perimeter_ratio: float = 0.1,
        required_detections: int = 5,
    ) -> None:
        if required_detections < 1:
            raise ValueError("required_detections must be at least 1")
        self.skin_ranges = tuple(skin_ranges)
        self.min_component_pixels = min_component_pixels
        self.min_area = min_area
        self.max_area = max_area
        self.aspect_range = aspect_range
        self.max_circularity = max_circularity
        self.max_perimeter_ratio = max_perimeter_ratio
        self.required_detections = required_detections

        self._consecutive: int = 0
        self._detected: bool = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def detect(self, frame: np.ndarray) -> FingerDetection:
        """
        Classify *frame* and advance the hysteresis state.

        Parameters
        ----------
        frame:
            BGR image array (H × W × 3, uint8).
        """
        # Classify before touching state so a failure leaves the streak intact.
        found = self.find_finger(frame)
        positive = found is not None
        self.update(positive)

        mask, contour = found if positive else (None, None)
        return FingerDetection(self._detected, self.confidence, mask, contour)

    def update(self, positive: bool) -> bool:
        """Feed one per-frame classification into the hysteresis counter."""
        was_detected = self._detected
        if positive:
            self._consecutive += 1
            if self._consecutive >= self.required_detections:
                self._detected = True
        else:
            self._consecutive = 0
            self._detected = False

        if self._detected != was_detected:
            logger.info("Finger %s.", "acquired" if self._detected else "lost")
        return self._detected

    def find_finger(self, frame: np.ndarray) -> Optional[Tuple[np.ndarray, np.ndarray]]:
        """
        Return ``(mask, contour)`` of the first finger-shaped component,
        or *None*.  Does not change detector state.
        """
        if frame.ndim != 3 or frame.shape[2] < 3:
            raise ValueError(f"expected an H × W × 3 BGR frame, got shape {frame.shape}")

        mask = skin_mask(to_hsv(frame), self.skin_ranges)
        for component in self._components(mask):
            contour = self._outline(component)
            if contour is not None and self.is_finger_shape(contour):
                return component, contour
        return None

    def is_finger_shape(self, contour: np.ndarray) -> bool:
        m = shape_metrics(contour)
        if m.area <= 0:
            return False
        low_aspect, high_aspect = self.aspect_range
        return (
            self.min_area <= m.area <= self.max_area
            and low_aspect < m.aspect_ratio < high_aspect
            and m.circularity < self.max_circularity
            and m.perimeter / m.area < self.max_perimeter_ratio
        )

    @property
    def detected(self) -> bool:
        return self._detected

    @property
    def consecutive_detections(self) -> int:
        return self._consecutive

    @property
    def confidence(self) -> float:
        """Progress of the current positive streak (0 – 1)."""
        return min(1.0, self._consecutive / self.required_detections)

    def reset(self) -> None:
        """Clear the hysteresis state."""
        self._consecutive = 0
        self._detected = False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _components(self, mask: np.ndarray) -> List[np.ndarray]:
        """4-connected components of *mask*, in row-major order of their first pixel."""
        n_labels, labels, stats, _ = cv2.connectedComponentsWithStats(
            mask.astype(np.uint8), connectivity=4
        )
        keyed = []
        for label in range(1, n_labels):
            if stats[label, cv2.CC_STAT_AREA] <= self.min_component_pixels:
                continue
            top = int(stats[label, cv2.CC_STAT_TOP])
            first_col = int(np.argmax(labels[top] == label))
            keyed.append(((top, first_col), label))
        keyed.sort()
        return [labels == label for _, label in keyed]

    @staticmethod
    def _outline(component: np.ndarray) -> Optional[np.ndarray]:
        contours, _ = cv2.findContours(
            component.astype(np.uint8), cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_NONE
        )
        if not contours:
            return None
        return max(contours, key=len)
