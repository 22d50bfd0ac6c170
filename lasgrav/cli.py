#!/usr/bin/env python3
"""
lasgrav command line.

Produce laser engraver G-code from a raster image.

Usage:
    lasgrav logo.png > logo.gcode
    lasgrav logo.png --dpi 600 --lines-per-mm 10 --steps-per-mm 80 -o logo.gcode
    lasgrav photo.jpg --motion uni --save-intermediate scaled.png
    python -m lasgrav logo.png --profile profiles/k40.yaml

G-code goes to stdout (or --output); progress and derived parameters go
to stderr.  Flags override values from the profile, which defaults to the
one shipped with the package.

Exit status: 0 on success, 1 on configuration or I/O errors, 2 on bad usage.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from io import StringIO
from pathlib import Path

from lasgrav import __version__
from lasgrav.configs.loader import (
    ConfigError,
    HMotion,
    ImportOptions,
    Interp,
    ToolpathParameters,
    load_profile,
    parse_interp,
    parse_motion,
    validate_import_options,
    validate_toolpath_parameters,
)
from lasgrav.pipeline import run
from lasgrav.raster.bitmap import ImageIOError
from lasgrav.utils import fs
from lasgrav.utils.logging_config import pop_context, push_context, setup_logging

logger = logging.getLogger("lasgrav.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lasgrav",
        description="A very simple tool for producing laser engraver "
                    "toolpaths from raster images.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Unset options take their value from the profile "
               "(see lasgrav/configs/default.yaml).",
    )
    parser.add_argument("image", type=Path, help="Raster image to engrave")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--profile",
        type=Path,
        help="Engraving profile YAML (default: shipped default.yaml)",
    )

    imp = parser.add_argument_group("Import Options")
    imp.add_argument(
        "--dpi", "-d",
        type=float,
        help="Input resolution in dots per inch; maps pixels to machine "
             "space, so changing it scales the engraving (default 300)",
    )
    imp.add_argument(
        "--threshold", "-t",
        type=int,
        help="Luminance (0-255) below which a pixel is engraved (default 128)",
    )
    imp.add_argument(
        "--interp", "-i",
        choices=[i.value for i in Interp],
        help="Resampling filter; only matters when scan lines don't map "
             "exactly onto pixels (default gaussian)",
    )

    out = parser.add_argument_group("Output Options")
    out.add_argument(
        "--lines-per-mm", "-l",
        type=int,
        help="Scan lines per mm in the engraving (default 8)",
    )
    out.add_argument("--feed", "-f", type=int, help="Feed rate in mm/min (default 1000)")
    out.add_argument("--power", "-p", type=int, help="Laser S value for 'on' spans (default 1000)")
    out.add_argument(
        "--motion", "-m",
        choices=[m.value for m in HMotion],
        help="Horizontal motion: bi is fastest, uni avoids X backlash (default bi)",
    )
    out.add_argument(
        "--precision",
        type=int,
        help="Force decimal places in G-code coordinates "
             "(default: derived from the machine step size)",
    )
    out.add_argument(
        "--quantize-horizontal",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Reduce horizontal resolution to match lines/mm "
             "(--no-quantize-horizontal overrides a profile that enables it)",
    )
    out.add_argument(
        "--output", "-o",
        type=Path,
        help="Write G-code to this file instead of stdout",
    )

    mach = parser.add_argument_group("Machine Options")
    mach.add_argument(
        "--steps-per-mm", "-s",
        type=int,
        help="Machine steps per mm; must be a multiple of lines/mm (default 160)",
    )

    dbg = parser.add_argument_group("Debugging Tools")
    dbg.add_argument(
        "--save-intermediate",
        type=Path,
        help="Write the resampled grayscale image (before thresholding) here",
    )
    dbg.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Threads used for span extraction (default 1)",
    )

    log = parser.add_argument_group("Logging")
    log.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Diagnostic verbosity on stderr (default INFO)",
    )
    log.add_argument("--quiet", "-q", action="store_true", help="Only log warnings and errors")
    log.add_argument("--log-json", action="store_true", help="Log JSON lines")
    log.add_argument("--log-file", type=str, help="Also log to this file")
    return parser


def resolve_settings(args: argparse.Namespace) -> tuple[ImportOptions, ToolpathParameters]:
    """Merge CLI overrides onto the profile and validate the result.

    Raises
    ------
    ConfigError
        If the profile or any merged value is invalid.
    """
    profile = load_profile(args.profile)

    imp_overrides = {
        "dpi": args.dpi,
        "threshold": args.threshold,
        "interp": parse_interp(args.interp) if args.interp else None,
    }
    tp_overrides = {
        "lines_per_mm": args.lines_per_mm,
        "feed": args.feed,
        "power": args.power,
        "motion": parse_motion(args.motion) if args.motion else None,
        "precision": args.precision,
        "quantize_horizontal": args.quantize_horizontal,
        "steps_per_mm": args.steps_per_mm,
    }

    options = dataclasses.replace(
        profile.import_options,
        **{k: v for k, v in imp_overrides.items() if v is not None},
    )
    params = dataclasses.replace(
        profile.toolpath,
        **{k: v for k, v in tp_overrides.items() if v is not None},
    )
    validate_import_options(options)
    validate_toolpath_parameters(params)
    if args.workers < 1:
        raise ConfigError(f"workers must be >= 1, got {args.workers}")
    return options, params


def _use_crlf_verbatim(stream) -> None:
    """Stop text-mode newline translation so CRLF reaches the stream unchanged."""
    reconfigure = getattr(stream, "reconfigure", None)
    if reconfigure is not None:
        reconfigure(newline="")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(
        log_level="WARNING" if args.quiet else args.log_level,
        log_file=args.log_file,
        json=args.log_json,
    )

    try:
        options, params = resolve_settings(args)
    except ConfigError as e:
        logger.error("%s", e)
        return 1

    push_context(image=args.image.name)
    try:
        if args.output is not None:
            buf = StringIO(newline="")
            run(args.image, buf, options, params,
                save_intermediate=args.save_intermediate, workers=args.workers)
            fs.atomic_write_text(args.output, buf.getvalue())
            logger.info("G-code written to %s", args.output)
        else:
            _use_crlf_verbatim(sys.stdout)
            run(args.image, sys.stdout, options, params,
                save_intermediate=args.save_intermediate, workers=args.workers)
            sys.stdout.flush()
    except ConfigError as e:
        logger.error("%s", e)
        return 1
    except ImageIOError as e:
        logger.error("%s", e)
        return 1
    except OSError as e:
        logger.error("writing G-code: %s", e)
        return 1
    finally:
        pop_context(keys=["image"])

    return 0


if __name__ == "__main__":
    sys.exit(main())
