#!/usr/bin/env python3
"""
Finger PPG – command-line measurement.

Usage
-----
    python main.py [OPTIONS]

Options
-------
    --resolution WxH       Camera resolution (default: 640x480)
    --fps INT              Target frame rate  (default: 30)
    --window FLOAT         Analysis window in seconds (default: 10)
    --min-seconds FLOAT    Data required before estimating (default: 3)
    --age INT              Child age in years, clamped to 0 – 7 (default: 5)
    --temperature FLOAT    Body temperature in °C, clamped to 35 – 42 (default: 37)
    --camera-index INT     OpenCV camera index (default: 0)
    --duration FLOAT       Measurement length in seconds (default: 12)
    --synthetic            Use a generated finger signal instead of a camera
    --synthetic-bpm FLOAT  Heart rate of the generated signal (default: 100)
    --seed INT             Seed for synthetic noise and blood-pressure jitter
    --min-confidence FLOAT Confidence needed to accept the final reading (default: 0.3)
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Iterator, Optional

import numpy as np

from finger_ppg.config import ProcessorConfig
from finger_ppg.processor import PPGProcessor, Result
from finger_ppg.sampler import CameraSampler, SyntheticFingerSampler, TimedFrame

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s – %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("finger_ppg")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Heart rate from a fingertip on the camera lens (PPG)",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--resolution", default="640x480",
                        help="Camera resolution, e.g. 640x480")
    parser.add_argument("--fps", type=int, default=30,
                        help="Target capture frame rate")
    parser.add_argument("--window", type=float, default=10.0,
                        help="Analysis window in seconds")
    parser.add_argument("--min-seconds", type=float, default=3.0,
                        help="Seconds of signal required before estimating")
    parser.add_argument("--age", type=int, default=5,
                        help="Child age in years")
    parser.add_argument("--temperature", type=float, default=37.0,
                        help="Body temperature in °C")
    parser.add_argument("--camera-index", type=int, default=0,
                        help="OpenCV VideoCapture index")
    parser.add_argument("--duration", type=float, default=12.0,
                        help="Measurement length in seconds")
    parser.add_argument("--synthetic", action="store_true",
                        help="Use a generated finger signal instead of a camera")
    parser.add_argument("--synthetic-bpm", type=float, default=100.0,
                        help="Heart rate of the generated signal")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for synthetic noise and blood-pressure jitter")
    parser.add_argument("--min-confidence", type=float, default=0.3,
                        help="Confidence needed to accept the final reading")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> ProcessorConfig:
    fps = float(args.fps)
    return ProcessorConfig(
        sampling_rate=fps,
        buffer_capacity=int(round(fps * args.window)),
        min_valid_samples=int(round(fps * args.min_seconds)),
        min_frame_interval=0.99 / fps,
        temperature=args.temperature,
        child_age=args.age,
    )


def _describe(result: Result) -> str:
    if not result.finger_detected:
        return result.message or "No finger"
    if result.heart_rate is None:
        return f"{result.message}  quality={result.quality.value} conf={result.confidence:.2f}"
    bp = result.blood_pressure
    bp_text = f"{bp.systolic}/{bp.diastolic} mmHg" if bp else "--"
    text = (f"HR={result.heart_rate} BPM  BP≈{bp_text}  "
            f"quality={result.quality.value} conf={result.confidence:.2f}")
    if result.artifacts:
        text += f"  artifacts={','.join(result.artifacts)}"
    return text


# ---------------------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------------------

def measure(
    processor: PPGProcessor,
    frames: Iterator[TimedFrame],
    duration: float,
    log_interval: float = 1.0,
) -> Optional[Result]:
    """Feed *frames* for *duration* seconds and return the last full result."""
    start: Optional[float] = None
    last_log: Optional[float] = None
    latest: Optional[Result] = None

    for ts, frame in frames:
        if start is None:
            start = ts
        result = processor.process_frame(frame, ts)
        if result is not None:
            latest = result
            if last_log is None or ts - last_log >= log_interval:
                logger.info("[%5.1fs] %s", ts - start, _describe(result))
                last_log = ts
        if ts - start >= duration:
            break
    return latest


def run(args: argparse.Namespace) -> int:
    try:
        res_w, res_h = (int(v) for v in args.resolution.lower().split("x"))
    except ValueError:
        logger.error("Invalid --resolution format.  Use WxH, e.g. 640x480.")
        return 1

    try:
        config = build_config(args)
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1

    rng = np.random.default_rng(args.seed)
    processor = PPGProcessor(config, rng=rng)
    logger.info("Starting measurement for %.0f s.  Place your finger on the camera.", args.duration)

    try:
        if args.synthetic:
            sampler = SyntheticFingerSampler(
                bpm=args.synthetic_bpm, fps=config.sampling_rate, seed=args.seed
            )
            final = measure(processor, sampler.frames(), args.duration)
        else:
            with CameraSampler(resolution=(res_w, res_h), fps=args.fps,
                               camera_index=args.camera_index) as camera:
                final = measure(processor, camera.frames(), args.duration)
    except KeyboardInterrupt:
        logger.info("Interrupted.")
        return 130
    except RuntimeError as exc:
        logger.error("%s", exc)
        return 1

    stats = processor.get_stats()
    logger.debug("Final stats: %s", stats)

    if final is not None and final.is_reportable(args.min_confidence):
        bp = final.blood_pressure
        print(f"Heart rate: {final.heart_rate} BPM "
              f"(quality {final.quality.value}, confidence {final.confidence:.0%})")
        if bp is not None:
            print(f"Blood pressure (approximate): {bp.systolic}/{bp.diastolic} mmHg")
        return 0

    print("No reliable reading – keep your finger still on the lens and try again.")
    return 2


def main() -> int:
    return run(parse_args())


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    sys.exit(main())
