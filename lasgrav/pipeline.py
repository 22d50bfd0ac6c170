"""End-to-end compile: image file -> planned rows -> G-code stream.

Stages run strictly in order, each consuming an immutable input:

    1. Validate import options and toolpath parameters (no I/O yet)
    2. Decode the image into a luminance Bitmap
    3. Resample to one row per scan line (optionally save it for inspection)
    4. Threshold and run-length encode each row into Spans
    5. Plan rows in machine space (flip, serpentine, rounding)
    6. Emit G-code

``compile_image`` stops after step 5 so callers can inspect the plan;
``run`` also emits.  Nothing is retried: any failure propagates and the
output must be regenerated from scratch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

from lasgrav.configs.loader import (
    ImportOptions,
    ToolpathParameters,
    validate_import_options,
    validate_toolpath_parameters,
)
from lasgrav.raster.bitmap import load_bitmap, save_bitmap
from lasgrav.raster.scaler import ScaleGeometry, scale_bitmap
from lasgrav.raster.spans import extract_spans
from lasgrav.toolpath.emitter import ToolpathEmitter
from lasgrav.toolpath.operations import RowPlan
from lasgrav.toolpath.planner import plan_rows

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledJob:
    """Result of compiling one image."""

    geometry: ScaleGeometry
    params: ToolpathParameters
    plans: tuple[RowPlan, ...] = field(default_factory=tuple)

    @property
    def row_count(self) -> int:
        return len(self.plans)

    @property
    def span_count(self) -> int:
        return sum(len(p.spans) for p in self.plans)


def compile_image(
    image_path: str | Path,
    options: ImportOptions | None = None,
    params: ToolpathParameters | None = None,
    *,
    save_intermediate: str | Path | None = None,
    workers: int = 1,
) -> CompiledJob:
    """Compile *image_path* into row plans.

    Parameters
    ----------
    image_path : str | Path
        Raster image in any format Pillow can identify.
    options : ImportOptions, optional
        Sampling settings; defaults when omitted.
    params : ToolpathParameters, optional
        Machine/output settings; defaults when omitted.
    save_intermediate : str | Path, optional
        Write the resampled, pre-threshold bitmap here.
    workers : int
        Threads for span extraction.

    Raises
    ------
    ConfigError
        On invalid settings, before the image is opened.
    ImageIOError
        If the image cannot be loaded or the intermediate cannot be written.
    """
    options = options or ImportOptions()
    params = params or ToolpathParameters()
    validate_import_options(options)
    validate_toolpath_parameters(params)

    bitmap = load_bitmap(image_path)
    scaled, geometry = scale_bitmap(bitmap, options.dpi, params, options.interp)

    if save_intermediate is not None:
        if scaled.is_empty:
            logger.warning("not writing intermediate output: scaled image is empty")
        else:
            save_bitmap(scaled, save_intermediate)

    span_rows = extract_spans(scaled, options.threshold, workers=workers)
    plans = plan_rows(span_rows, params, geometry.dots_per_mm)
    return CompiledJob(geometry=geometry, params=params, plans=tuple(plans))


def run(
    image_path: str | Path,
    stream: TextIO,
    options: ImportOptions | None = None,
    params: ToolpathParameters | None = None,
    *,
    save_intermediate: str | Path | None = None,
    workers: int = 1,
) -> CompiledJob:
    """Compile *image_path* and write the G-code program to *stream*."""
    job = compile_image(
        image_path,
        options,
        params,
        save_intermediate=save_intermediate,
        workers=workers,
    )
    ToolpathEmitter(job.params).emit(job.plans, stream)
    logger.info("wrote %d rows (%d spans)", job.row_count, job.span_count)
    return job
