"""Tests for the lasgrav command line.

Exit codes, flag/profile precedence, stdout vs --output, and error
reporting on stderr.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import numpy as np
import pytest

from lasgrav.cli import build_parser, main, resolve_settings
from lasgrav.configs.loader import HMotion, Interp

BLACK_2X2_GCODE = (
    b"G90\r\n"
    b"G0 X0 Y0 F1000\r\n"
    b"M3 S0\r\n"
    b"( row 0: -> )\r\n"
    b"G0 X0.00000 Y0.06250 S0\r\n"
    b"G1 X0.16933 S1000\r\n"
    b"M5\r\n"
)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """main() reconfigures the root logger; put it back after each test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


class TestParser:
    def test_unset_flags_are_none(self) -> None:
        args = build_parser().parse_args(["img.png"])
        assert args.dpi is None
        assert args.lines_per_mm is None
        assert args.quantize_horizontal is None
        assert args.workers == 1

    def test_short_flags(self) -> None:
        args = build_parser().parse_args(
            ["img.png", "-d", "600", "-t", "90", "-i", "cubic", "-l", "10",
             "-f", "1500", "-p", "255", "-m", "uni", "-s", "80", "-o", "out.nc"]
        )
        assert args.dpi == 600.0
        assert args.threshold == 90
        assert args.interp == "cubic"
        assert args.lines_per_mm == 10
        assert args.feed == 1500
        assert args.power == 255
        assert args.motion == "uni"
        assert args.steps_per_mm == 80
        assert args.output == Path("out.nc")

    def test_bad_choice_exits_2(self) -> None:
        with pytest.raises(SystemExit) as exc:
            build_parser().parse_args(["img.png", "--motion", "zigzag"])
        assert exc.value.code == 2

    def test_missing_image_arg_exits_2(self) -> None:
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 2


class TestResolveSettings:
    def test_defaults_from_profile(self) -> None:
        options, params = resolve_settings(build_parser().parse_args(["img.png"]))
        assert options.dpi == 300.0
        assert options.interp is Interp.GAUSSIAN
        assert params.steps_per_mm == 160
        assert params.motion is HMotion.BI
        assert params.quantize_horizontal is False

    def test_flags_override_profile(self, tmp_path: Path) -> None:
        profile = tmp_path / "p.yaml"
        profile.write_text(
            "schema: lasgrav_profile.v1\noutput:\n  feed: 500\n  power: 300\n",
            encoding="utf-8",
        )
        args = build_parser().parse_args(
            ["img.png", "--profile", str(profile), "--feed", "750",
             "--interp", "nearest", "--quantize-horizontal"]
        )
        options, params = resolve_settings(args)
        assert params.feed == 750
        assert params.power == 300
        assert params.quantize_horizontal is True
        assert options.interp is Interp.NEAREST

    def test_flag_turns_off_profile_quantization(self, tmp_path: Path) -> None:
        profile = tmp_path / "q.yaml"
        profile.write_text(
            "schema: lasgrav_profile.v1\noutput:\n  quantize_horizontal: true\n",
            encoding="utf-8",
        )
        parser = build_parser()
        _, params = resolve_settings(parser.parse_args(["img.png", "--profile", str(profile)]))
        assert params.quantize_horizontal is True
        _, params = resolve_settings(
            parser.parse_args(["img.png", "--profile", str(profile), "--no-quantize-horizontal"])
        )
        assert params.quantize_horizontal is False


# ---------------------------------------------------------------------------
# Running
# ---------------------------------------------------------------------------


class TestMain:
    def test_output_file(self, black_2x2: Path, tmp_path: Path) -> None:
        out = tmp_path / "job.gcode"
        assert main([str(black_2x2), "--output", str(out), "-q"]) == 0
        assert out.read_bytes() == BLACK_2X2_GCODE

    def test_stdout(self, black_2x2: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([str(black_2x2), "-q"]) == 0
        out = capsys.readouterr().out
        assert out.startswith("G90")
        assert "G1 X0.16933 S1000" in out
        assert out.rstrip().endswith("M5")

    def test_diagnostics_on_stderr(
        self, black_2x2: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        assert main([str(black_2x2), "-o", str(tmp_path / "x.gcode")]) == 0
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "engraving consists of 1 lines" in captured.err

    def test_white_image(self, white_2x2: Path, tmp_path: Path) -> None:
        out = tmp_path / "job.gcode"
        assert main([str(white_2x2), "-o", str(out), "-q"]) == 0
        assert out.read_bytes() == b"G90\r\nG0 X0 Y0 F1000\r\nM3 S0\r\nM5\r\n"

    def test_precision_flag(self, black_2x2: Path, tmp_path: Path) -> None:
        out = tmp_path / "job.gcode"
        assert main([str(black_2x2), "-o", str(out), "--precision", "2", "-q"]) == 0
        assert b"G0 X0.00 Y0.06 S0\r\n" in out.read_bytes()

    def test_save_intermediate(self, black_2x2: Path, tmp_path: Path) -> None:
        scaled = tmp_path / "scaled.png"
        out = tmp_path / "job.gcode"
        rc = main([str(black_2x2), "-o", str(out), "--save-intermediate", str(scaled), "-q"])
        assert rc == 0
        assert scaled.exists()

    def test_log_file(self, black_2x2: Path, tmp_path: Path) -> None:
        log = tmp_path / "logs" / "run.log"
        rc = main([str(black_2x2), "-o", str(tmp_path / "x.gcode"), "--log-file", str(log)])
        assert rc == 0
        logging.getLogger().handlers[-1].flush()
        assert "image=black.png" in log.read_text(encoding="utf-8")

    def test_log_json(self, black_2x2: Path, tmp_path: Path) -> None:
        log = tmp_path / "run.jsonl"
        rc = main([str(black_2x2), "-o", str(tmp_path / "x.gcode"),
                   "--log-json", "--log-file", str(log)])
        assert rc == 0
        logging.getLogger().handlers[-1].flush()
        records = [json.loads(line) for line in log.read_text(encoding="utf-8").splitlines()]
        assert any(r["msg"].startswith("engraving consists of 1 lines") for r in records)
        assert all(r["image"] == "black.png" for r in records if r["name"] != "lasgrav.cli")


class TestErrors:
    def test_indivisible(
        self, black_2x2: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        out = tmp_path / "job.gcode"
        assert main([str(black_2x2), "-o", str(out), "--lines-per-mm", "7"]) == 1
        assert "can't evenly divide 160 steps/mm into 7 lines" in capsys.readouterr().err
        assert not out.exists()

    def test_bad_dpi(self, black_2x2: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([str(black_2x2), "--dpi", "0"]) == 1
        assert "DPI must be positive" in capsys.readouterr().err

    def test_missing_image(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([str(tmp_path / "nope.png")]) == 1
        assert "loading image file" in capsys.readouterr().err

    def test_undecodable_image(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        path = tmp_path / "junk.png"
        path.write_bytes(np.arange(64, dtype=np.uint8).tobytes())
        assert main([str(path)]) == 1
        assert "decoding image file" in capsys.readouterr().err

    def test_bad_profile(self, black_2x2: Path, tmp_path: Path) -> None:
        assert main([str(black_2x2), "--profile", str(tmp_path / "missing.yaml")]) == 1

    def test_bad_workers(self, black_2x2: Path) -> None:
        assert main([str(black_2x2), "--workers", "0"]) == 1
