"""
Fixed-capacity sliding window of colour samples.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, NamedTuple, Tuple

import numpy as np


class Sample(NamedTuple):
    """One reduced frame: timestamp (s) and mean channel intensities (0 – 255)."""

    timestamp: float
    red: float
    green: float
    blue: float


class SignalBuffer:
    """
    FIFO of :class:`Sample` objects bounded to *capacity* entries.

    Once full, every append evicts the oldest sample.  Samples must
    arrive in non-decreasing timestamp order.
    """

    def __init__(self, capacity: int = 300) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._samples: Deque[Sample] = deque(maxlen=capacity)

    def append(self, sample: Sample) -> None:
        if self._samples and sample.timestamp < self._samples[-1].timestamp:
            raise ValueError(
                f"out-of-order sample: {sample.timestamp} < {self._samples[-1].timestamp}"
            )
        self._samples.append(sample)

    def clear(self) -> None:
        self._samples.clear()

    @property
    def capacity(self) -> int:
        return self._samples.maxlen

    @property
    def fill_ratio(self) -> float:
        """How full the buffer is (0 – 1)."""
        return len(self._samples) / self._samples.maxlen

    def __len__(self) -> int:
        return len(self._samples)

    def snapshot(self) -> Tuple[Sample, ...]:
        return tuple(self._samples)

    # ------------------------------------------------------------------
    # Column views (copies, safe to modify)
    # ------------------------------------------------------------------

    def timestamps(self) -> np.ndarray:
        return np.array([s.timestamp for s in self._samples], dtype=np.float64)

    def green(self) -> np.ndarray:
        """The canonical PPG channel."""
        return np.array([s.green for s in self._samples], dtype=np.float64)
