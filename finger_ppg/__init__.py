"""
Finger PPG – heart-rate and blood-pressure estimation from a camera feed.
Place a fingertip over the lens; the pipeline detects the finger, tracks
the green-channel intensity of the covered region as a
photoplethysmography (PPG) signal and estimates vital signs from it.
"""

from finger_ppg.config import ProcessorConfig
from finger_ppg.processor import PPGProcessor, ProcessorStats, Quality, Result

__all__ = ["PPGProcessor", "ProcessorConfig", "ProcessorStats", "Quality", "Result"]

__version__ = "0.1.0"
__author__ = "finger_ppg"
