"""
Frame samplers.

The pipeline only needs BGR frames and their capture times; where they
come from is up to the caller.  Two sources are provided:

* :class:`CameraSampler` – any webcam / phone camera reachable through
  OpenCV ``VideoCapture``.
* :class:`SyntheticFingerSampler` – renders a finger-shaped, skin-toned
  blob whose green channel pulses with a synthetic PPG waveform.  Handy
  for demos and tests on machines without a camera.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Generator, Optional, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)

TimedFrame = Tuple[float, np.ndarray]


class CameraSampler:
    """
    Thin wrapper around OpenCV ``VideoCapture``.

    Parameters
    ----------
    resolution:
        (width, height) of captured frames.
    fps:
        Target frame rate.  Actual rate may differ slightly.
    camera_index:
        OpenCV camera index.
    max_failed_reads:
        Consecutive failed reads after which :meth:`frames` gives up.
    """

    def __init__(
        self,
        resolution: Tuple[int, int] = (640, 480),
        fps: int = 30,
        camera_index: int = 0,
        max_failed_reads: int = 10,
    ) -> None:
        self.resolution = resolution
        self.fps = fps
        self.camera_index = camera_index
        self.max_failed_reads = max_failed_reads
        self._cap: Optional[cv2.VideoCapture] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Initialise and start the camera."""
        cap = cv2.VideoCapture(self.camera_index)
        if not cap.isOpened():
            raise RuntimeError(
                f"Cannot open video capture device index={self.camera_index}"
            )
        w, h = self.resolution
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
        cap.set(cv2.CAP_PROP_FPS, self.fps)
        self._cap = cap
        logger.info(
            "Camera opened – index=%d resolution=%s fps=%d",
            self.camera_index, self.resolution, self.fps,
        )

    def close(self) -> None:
        """Stop and release the camera."""
        if self._cap is None:
            return
        self._cap.release()
        self._cap = None
        logger.info("Camera closed.")

    # Context-manager support
    def __enter__(self) -> "CameraSampler":
        self.open()
        return self

    def __exit__(self, *_) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Frame acquisition
    # ------------------------------------------------------------------

    def read_frame(self) -> Optional[np.ndarray]:
        """
        Capture a single frame.

        Returns
        -------
        numpy.ndarray
            BGR image array (H × W × 3, dtype uint8), or *None* on failure.
        """
        if self._cap is None:
            raise RuntimeError("Camera is not open.  Call open() first.")
        ok, frame = self._cap.read()
        if not ok:
            logger.warning("VideoCapture.read() returned False.")
            return None
        return frame

    def frames(self) -> Generator[TimedFrame, None, None]:
        """
        Yield ``(timestamp, frame)`` pairs until the camera is closed or
        keeps failing.  Timestamps come from :func:`time.monotonic`.

        Usage::

            with CameraSampler() as cam:
                for ts, frame in cam.frames():
                    processor.process_frame(frame, ts)
        """
        null_streak = 0
        while self._cap is not None:
            frame = self.read_frame()
            if frame is None:
                null_streak += 1
                if null_streak >= self.max_failed_reads:
                    logger.error(
                        "Camera returned %d consecutive None frames – aborting.",
                        null_streak,
                    )
                    break
                continue
            null_streak = 0
            yield time.monotonic(), frame


class SyntheticFingerSampler:
    """
    Generates frames of a fingertip pulsing at a fixed heart rate.

    The pulse waveform combines the cardiac fundamental with its second
    and third harmonics, a 0.25 Hz respiratory component, slow baseline
    drift and a little Gaussian noise.  Only the finger region carries
    the pulse; the background is black.

    Parameters
    ----------
    bpm:
        Simulated heart rate.
    fps:
        Frame rate; timestamps advance by exactly ``1 / fps``.
    resolution:
        (width, height) of the frames.
    finger_size:
        (width, height) of the finger rectangle in pixels.
    amplitude:
        Peak pulsatile swing of the green channel in intensity units.
    noise:
        Standard deviation of per-frame intensity noise.
    seed:
        Seed for the noise generator.
    """

    def __init__(
        self,
        bpm: float = 100.0,
        fps: float = 30.0,
        resolution: Tuple[int, int] = (320, 240),
        finger_size: Tuple[int, int] = (60, 150),
        amplitude: float = 8.0,
        noise: float = 0.3,
        seed: Optional[int] = None,
    ) -> None:
        self.bpm = bpm
        self.fps = fps
        self.resolution = resolution
        self.finger_size = finger_size
        self.amplitude = amplitude
        self.noise = noise
        self._rng = np.random.default_rng(seed)
        self._index = 0

    def waveform(self, t: float) -> float:
        """Normalised PPG value (roughly −1.6 … 1.6) at time *t* seconds."""
        f = self.bpm / 60.0
        cardiac = math.sin(2 * math.pi * f * t)
        harmonics = 0.3 * math.sin(4 * math.pi * f * t) + 0.1 * math.sin(6 * math.pi * f * t)
        respiratory = 0.2 * math.sin(2 * math.pi * 0.25 * t)
        baseline = 0.1 * math.sin(2 * math.pi * 0.05 * t)
        return cardiac + harmonics + respiratory + baseline

    def render(self, t: float, finger: bool = True) -> np.ndarray:
        """Draw one BGR frame for time *t*."""
        w, h = self.resolution
        frame = np.zeros((h, w, 3), dtype=np.uint8)
        if not finger:
            return frame

        fw, fh = self.finger_size
        x0, y0 = (w - fw) // 2, (h - fh) // 2
        pulse = self.amplitude * self.waveform(t) + self._rng.normal(0.0, self.noise)
        # Reddish skin tone: hue stays inside the skin bands for the whole swing.
        blue, green, red = 60.0, 80.0 + pulse, 180.0 + 0.5 * pulse
        colour = tuple(int(np.clip(round(c), 0, 255)) for c in (blue, green, red))
        cv2.rectangle(frame, (x0, y0), (x0 + fw - 1, y0 + fh - 1), colour, thickness=-1)
        return frame

    def read_frame(self) -> TimedFrame:
        t = self._index / self.fps
        self._index += 1
        return t, self.render(t)

    def frames(self, count: Optional[int] = None) -> Generator[TimedFrame, None, None]:
        """Yield ``(timestamp, frame)`` pairs, forever or *count* times."""
        produced = 0
        while count is None or produced < count:
            yield self.read_frame()
            produced += 1
