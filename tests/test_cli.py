"""
Tests for the command-line entry point, using the synthetic sampler.
Run with:  pytest tests/test_cli.py
"""

from __future__ import annotations

import pytest

from main import build_config, parse_args, run


class TestCli:

    def test_defaults(self):
        args = parse_args([])
        assert args.fps == 30
        assert args.age == 5
        assert args.synthetic is False

    def test_build_config(self):
        cfg = build_config(parse_args(["--fps", "25", "--window", "8", "--min-seconds", "2",
                                       "--age", "12", "--temperature", "38.5"]))
        assert cfg.sampling_rate == 25.0
        assert cfg.buffer_capacity == 200
        assert cfg.min_valid_samples == 50
        assert cfg.min_frame_interval < 1 / 25
        assert cfg.child_age == 7
        assert cfg.temperature == 38.5

    def test_synthetic_measurement(self, capsys):
        code = run(parse_args(["--synthetic", "--duration", "12", "--seed", "1"]))
        assert code == 0
        out = capsys.readouterr().out
        assert "Heart rate:" in out
        assert "BPM" in out

    def test_bad_resolution(self):
        assert run(parse_args(["--synthetic", "--resolution", "big"])) == 1

    def test_window_shorter_than_minimum(self):
        args = parse_args(["--synthetic", "--window", "2", "--min-seconds", "3"])
        assert run(args) == 1

    @pytest.mark.parametrize("bpm", [90.0, 110.0])
    def test_synthetic_rates(self, bpm, capsys):
        code = run(parse_args(["--synthetic", "--synthetic-bpm", str(bpm),
                               "--duration", "12", "--seed", "4"]))
        assert code == 0
        line = next(l for l in capsys.readouterr().out.splitlines() if l.startswith("Heart rate:"))
        reported = int(line.split()[2])
        assert abs(reported - bpm) <= 4
