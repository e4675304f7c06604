"""
PPG pipeline orchestrator.

One :class:`PPGProcessor` owns all per-session state: the sample buffer,
the heart-rate and blood-pressure histories and the finger detector's
hysteresis.  Frames are fed one at a time through
:meth:`PPGProcessor.process_frame`; each call returns a :class:`Result`
ready for display, or *None* when the frame was dropped.

The processor is synchronous and holds no threads or locks; callers must
not invoke it concurrently.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, Optional, Tuple

import numpy as np

from finger_ppg.blood_pressure import BloodPressure, BloodPressureEstimator
from finger_ppg.buffer import Sample, SignalBuffer
from finger_ppg.conditioning import DisplayPoint, SignalConditioner
from finger_ppg.config import ProcessorConfig
from finger_ppg.finger_detector import FingerDetector
from finger_ppg.heart_rate import HeartRateEstimator, clamp_to_age_band, median_bpm
from finger_ppg.quality import (
    Quality,
    collecting_progress,
    detect_artifacts,
    quality_label,
    score_confidence,
)
from finger_ppg.region import reduce_region

logger = logging.getLogger(__name__)

NO_FINGER_MESSAGE = "Please place your finger properly on the camera"
ERROR_MESSAGE = "Processing error occurred"
NO_BEATS_MESSAGE = "Hold still – no clear heartbeat yet"

_REPORTABLE = (Quality.FAIR, Quality.GOOD, Quality.EXCELLENT)


@dataclass(frozen=True)
class Result:
    """Per-frame output handed to the display layer."""

    finger_detected: bool
    quality: Quality
    confidence: float
    heart_rate: Optional[int] = None
    blood_pressure: Optional[BloodPressure] = None
    signal_data: Tuple[DisplayPoint, ...] = ()
    message: Optional[str] = None
    artifacts: Tuple[str, ...] = ()
    temperature: Optional[float] = None
    child_age: Optional[int] = None

    def is_reportable(self, min_confidence: float = 0.3) -> bool:
        """True once the reading is trustworthy enough to show as final."""
        return (
            self.heart_rate is not None
            and self.quality in _REPORTABLE
            and self.confidence > min_confidence
        )

    def as_dict(self) -> Dict[str, Any]:
        """camelCase mapping matching the mobile display contract."""
        bp = None
        if self.blood_pressure is not None:
            bp = {"systolic": self.blood_pressure.systolic,
                  "diastolic": self.blood_pressure.diastolic}
        return {
            "fingerDetected": self.finger_detected,
            "heartRate": self.heart_rate,
            "bloodPressure": bp,
            "confidence": self.confidence,
            "quality": self.quality.value,
            "signalData": [
                {"x": p.x, "y": p.y, "timestamp": p.timestamp} for p in self.signal_data
            ],
            "message": self.message,
            "artifacts": list(self.artifacts),
            "temperature": self.temperature,
            "childAge": self.child_age,
        }


@dataclass(frozen=True)
class ProcessorStats:
    """Read-only diagnostic snapshot of a processor."""

    buffer_size: int
    buffer_capacity: int
    buffer_fill_ratio: float
    min_valid_samples: int
    sampling_rate: float
    heart_rate_history: Tuple[int, ...]
    bp_history: Tuple[BloodPressure, ...]
    hrv: float
    consecutive_detections: int
    finger_detected: bool
    temperature: float
    child_age: int


class PPGProcessor:
    """
    Frame-by-frame vital-sign estimator.

    Parameters
    ----------
    config:
        Pipeline configuration; defaults to :class:`ProcessorConfig()`.
    detector:
        Finger detector; defaults to :class:`FingerDetector()`.
    rng:
        Random generator for the blood-pressure estimator.  Pass a seeded
        generator for reproducible output.
    """

    def __init__(
        self,
        config: Optional[ProcessorConfig] = None,
        detector: Optional[FingerDetector] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.config = config if config is not None else ProcessorConfig()
        self.detector = detector if detector is not None else FingerDetector()

        self._buffer = SignalBuffer(self.config.buffer_capacity)
        self._conditioner = SignalConditioner(self.config)
        self._heart_rate = HeartRateEstimator(self.config)
        self._blood_pressure = BloodPressureEstimator(rng)
        self._bp_history: Deque[BloodPressure] = deque(maxlen=self.config.bp_history_size)
        self._last_accepted: Optional[float] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def configure(self, temperature: Optional[float] = None, child_age: Optional[int] = None) -> None:
        """
        Set the compensation parameters.  Out-of-range values are clamped
        (temperature to 35 – 42 °C, age to 0 – 7 years), never rejected.
        """
        changes: Dict[str, Any] = {}
        if temperature is not None:
            changes["temperature"] = temperature
        if child_age is not None:
            changes["child_age"] = child_age
        if changes:
            self.config = dataclasses.replace(self.config, **changes)
            logger.info(
                "Configured temperature=%.1f°C child_age=%d",
                self.config.temperature, self.config.child_age,
            )

    def process_frame(self, frame: np.ndarray, timestamp: Optional[float] = None) -> Optional[Result]:
        """
        Run one frame through the pipeline.

        Parameters
        ----------
        frame:
            BGR image array (H × W × 3, uint8).
        timestamp:
            Capture time in seconds on a monotonic clock.  Defaults to
            :func:`time.monotonic`.

        Returns
        -------
        Result or None
            *None* when the frame is dropped: it arrived sooner than
            ``min_frame_interval`` after the previous accepted frame, or
            the finger region held no pixel.
        """
        if timestamp is None:
            timestamp = time.monotonic()
        if (
            self._last_accepted is not None
            and timestamp - self._last_accepted < self.config.min_frame_interval
        ):
            return None
        self._last_accepted = timestamp

        try:
            return self._process(frame, timestamp)
        except Exception:                                   # noqa: BLE001
            logger.exception("PPG processing failed at t=%.3f", timestamp)
            return Result(
                finger_detected=False,
                quality=Quality.ERROR,
                confidence=0.0,
                message=ERROR_MESSAGE,
            )

    def reset(self) -> None:
        """Clear all session state."""
        self._buffer.clear()
        self._heart_rate.reset()
        self._bp_history.clear()
        self.detector.reset()
        self._last_accepted = None
        logger.info("Processor reset.")

    def get_stats(self) -> ProcessorStats:
        return ProcessorStats(
            buffer_size=len(self._buffer),
            buffer_capacity=self._buffer.capacity,
            buffer_fill_ratio=self._buffer.fill_ratio,
            min_valid_samples=self.config.min_valid_samples,
            sampling_rate=self.config.sampling_rate,
            heart_rate_history=self._heart_rate.history,
            bp_history=tuple(self._bp_history),
            hrv=self._heart_rate.hrv(),
            consecutive_detections=self.detector.consecutive_detections,
            finger_detected=self.detector.detected,
            temperature=self.config.temperature,
            child_age=self.config.child_age,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _process(self, frame: np.ndarray, timestamp: float) -> Optional[Result]:
        detection = self.detector.detect(frame)
        if not detection.detected:
            return Result(
                finger_detected=False,
                quality=Quality.POOR,
                confidence=0.0,
                message=NO_FINGER_MESSAGE,
            )

        means = reduce_region(frame, detection.mask)
        if means is None:
            logger.warning("Finger region held no valid pixel – frame dropped.")
            return None

        self._buffer.append(Sample(timestamp, means.red, means.green, means.blue))

        n = len(self._buffer)
        minimum = self.config.min_valid_samples
        if n < minimum:
            return Result(
                finger_detected=True,
                quality=Quality.COLLECTING,
                confidence=collecting_progress(n, minimum),
                message=f"Collecting data... {n}/{minimum}",
            )
        return self._estimate()

    def _estimate(self) -> Result:
        """Full estimation over the buffered window.  Histories are only
        committed once every stage has succeeded."""
        cfg = self.config
        green = self._buffer.green()
        timestamps = self._buffer.timestamps()

        conditioned = self._conditioner.condition(green)
        estimate = self._heart_rate.estimate(conditioned, timestamps, cfg.child_age)

        if estimate is not None:
            history = self._heart_rate.preview(estimate.bpm)
            heart_rate = int(round(clamp_to_age_band(median_bpm(history), cfg.child_age)))
        else:
            history = self._heart_rate.history
            heart_rate = None

        blood_pressure = self._blood_pressure.estimate(
            conditioned, heart_rate, cfg.child_age, cfg.temperature
        )
        confidence = score_confidence(
            conditioned,
            history,
            heart_rate,
            snr_threshold=cfg.snr_threshold,
            stability_threshold=cfg.stability_threshold,
            amplitude_threshold=cfg.amplitude_threshold,
            valid_range=cfg.valid_hr_range,
        )
        artifacts = detect_artifacts(green)
        signal_data = self._conditioner.display_points(conditioned, timestamps)

        if estimate is not None:
            self._heart_rate.commit(estimate.bpm)
        if blood_pressure is not None:
            self._bp_history.append(blood_pressure)

        return Result(
            finger_detected=True,
            quality=quality_label(confidence),
            confidence=confidence,
            heart_rate=heart_rate,
            blood_pressure=blood_pressure,
            signal_data=tuple(signal_data),
            message=None if heart_rate is not None else NO_BEATS_MESSAGE,
            artifacts=tuple(artifacts),
            temperature=cfg.temperature,
            child_age=cfg.child_age,
        )
