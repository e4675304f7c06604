"""
Region reducer: collapse a frame (or a masked part of it) to one mean
intensity per colour channel.
"""

from __future__ import annotations

import logging
from typing import NamedTuple, Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class ChannelMeans(NamedTuple):
    red: float
    green: float
    blue: float


def reduce_region(frame: np.ndarray, mask: Optional[np.ndarray] = None) -> Optional[ChannelMeans]:
    """
    Return the mean R, G and B intensity of *frame* inside *mask*.

    Parameters
    ----------
    frame:
        BGR image array (H × W × 3, uint8).
    mask:
        Optional single-channel array of the same height and width;
        non-zero pixels belong to the region.  The whole frame is used
        when omitted.

    Returns
    -------
    ChannelMeans or None
        *None* when the region contains no pixel.
    """
    if frame is None or frame.size == 0:
        return None
    if frame.ndim != 3 or frame.shape[2] < 3:
        raise ValueError(f"expected an H × W × 3 BGR frame, got shape {frame.shape}")

    bgr = np.ascontiguousarray(frame[:, :, :3])
    if mask is None:
        b, g, r, _ = cv2.mean(bgr)
        return ChannelMeans(red=r, green=g, blue=b)

    mask = np.asarray(mask)
    if mask.shape != frame.shape[:2]:
        raise ValueError(f"mask shape {mask.shape} does not match frame {frame.shape[:2]}")
    mask_u8 = (mask > 0).astype(np.uint8)
    if cv2.countNonZero(mask_u8) == 0:
        logger.debug("Region mask is empty – frame dropped.")
        return None

    b, g, r, _ = cv2.mean(bgr, mask=mask_u8)
    return ChannelMeans(red=r, green=g, blue=b)
