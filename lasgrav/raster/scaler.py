"""Physical scaling: pixel grid -> one bitmap row per output scan line.

The input resolution (dpi) fixes the physical size of the image.  From
that and the machine settings we derive how many whole scan lines fit and
resample the bitmap so that row ``y`` is exactly scan line ``y``:

    dots/mm          = dpi / 25.4
    size (mm)        = pixels / dots/mm
    steps per line   = steps/mm / lines/mm          (exact integer)
    steps per axis   = ceil(size * steps/mm)
    line count       = floor(vertical steps / steps per line)
    output width     = floor(horizontal steps / steps per line)  if quantized
                       bitmap width                               otherwise

The line count rounds down on purpose: a partial last line is dropped
rather than padded, so a tall image can lose up to one line of height at
the bottom edge.

Resampling is delegated to Pillow for ``nearest``, ``lanczos3`` and
``cubic`` (Catmull-Rom, Pillow's BICUBIC).  ``gaussian`` runs Pillow's
Gaussian blur with a radius scaled to the reduction ratio and then
samples the nearest pixel.
The filter only changes anti-aliasing at non-integer ratios; downstream
logic does not depend on it.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np
from PIL import Image, ImageFilter

from lasgrav.configs.loader import (
    MM_PER_INCH,
    ConfigError,
    Interp,
    ToolpathParameters,
    validate_toolpath_parameters,
)
from lasgrav.raster.bitmap import Bitmap

logger = logging.getLogger(__name__)

_PIL_FILTERS = {
    Interp.NEAREST: Image.Resampling.NEAREST,
    Interp.GAUSSIAN: Image.Resampling.NEAREST,
    Interp.LANCZOS3: Image.Resampling.LANCZOS,
    Interp.CUBIC: Image.Resampling.BICUBIC,
}

# Kernel sigma in output-pixel units, widened by the reduction ratio.
_GAUSSIAN_SIGMA = 0.5


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScaleGeometry:
    """Derived physical layout of one engraving job.

    Attributes
    ----------
    dots_per_mm : float
        Native pixel density of the input.
    width_mm, height_mm : float
        Physical size of the input image.
    width_steps, height_steps : int
        Machine steps covering each axis (rounded up).
    steps_per_line : int
        Machine steps per scan line.
    line_count : int
        Number of scan lines (rounded down).
    output_width : int
        Pixel columns per scan line after resampling.
    mm_per_pixel : float
        X pitch of one output column.
    """

    dots_per_mm: float
    width_mm: float
    height_mm: float
    width_steps: int
    height_steps: int
    steps_per_line: int
    line_count: int
    output_width: int
    mm_per_pixel: float
    mm_per_line: float

    @property
    def input_pixels_per_line(self) -> float:
        return self.dots_per_mm * self.mm_per_line


def compute_geometry(
    width_px: int,
    height_px: int,
    dpi: float,
    params: ToolpathParameters,
) -> ScaleGeometry:
    """Derive the physical layout for a ``width_px`` x ``height_px`` image.

    Raises
    ------
    ConfigError
        If dpi <= 0 or the toolpath parameters are invalid (including
        steps/mm not being a multiple of lines/mm).
    """
    if not dpi > 0:
        raise ConfigError(f"DPI must be positive, but was set as: {dpi}")
    validate_toolpath_parameters(params)
    if width_px < 0 or height_px < 0:
        raise ValueError(f"Pixel dimensions must be >= 0, got {width_px}x{height_px}")

    steps_per_line = params.steps_per_line
    dpmm = dpi / MM_PER_INCH

    width_mm = width_px / dpmm
    height_mm = height_px / dpmm

    width_steps = math.ceil(width_mm * params.steps_per_mm)
    height_steps = math.ceil(height_mm * params.steps_per_mm)

    line_count = height_steps // steps_per_line

    if params.quantize_horizontal:
        output_width = width_steps // steps_per_line
        mm_per_pixel = params.mm_per_line
    else:
        output_width = width_px
        mm_per_pixel = 1.0 / dpmm

    return ScaleGeometry(
        dots_per_mm=dpmm,
        width_mm=width_mm,
        height_mm=height_mm,
        width_steps=width_steps,
        height_steps=height_steps,
        steps_per_line=steps_per_line,
        line_count=line_count,
        output_width=output_width,
        mm_per_pixel=mm_per_pixel,
        mm_per_line=params.mm_per_line,
    )


# ---------------------------------------------------------------------------
# Resampling
# ---------------------------------------------------------------------------


def gaussian_prefilter(bitmap: Bitmap, width: int, height: int) -> Bitmap:
    """Blur *bitmap* ahead of sampling it down to ``width`` x ``height``."""
    sigma_x = _GAUSSIAN_SIGMA * max(bitmap.width / width, 1.0)
    sigma_y = _GAUSSIAN_SIGMA * max(bitmap.height / height, 1.0)

    blurred = bitmap.to_image().filter(ImageFilter.GaussianBlur(radius=(sigma_x, sigma_y)))
    return Bitmap(np.asarray(blurred, dtype=np.uint8))


def resample(bitmap: Bitmap, width: int, height: int, interp: Interp) -> Bitmap:
    """Resample *bitmap* to ``width`` x ``height`` with the named filter.

    A zero target dimension yields an empty bitmap; identical dimensions
    return the input unchanged.
    """
    if width < 0 or height < 0:
        raise ValueError(f"Target size must be >= 0, got {width}x{height}")
    if width == 0 or height == 0 or bitmap.is_empty:
        return Bitmap(np.full((height, width), 255, dtype=np.uint8))
    if (width, height) == (bitmap.width, bitmap.height):
        return bitmap

    if interp is Interp.GAUSSIAN:
        bitmap = gaussian_prefilter(bitmap, width, height)

    resized = bitmap.to_image().resize((width, height), resample=_PIL_FILTERS[interp])
    return Bitmap(np.asarray(resized, dtype=np.uint8))


def scale_bitmap(
    bitmap: Bitmap,
    dpi: float,
    params: ToolpathParameters,
    interp: Interp = Interp.GAUSSIAN,
) -> tuple[Bitmap, ScaleGeometry]:
    """Resample *bitmap* so each row is one output scan line.

    Returns
    -------
    tuple[Bitmap, ScaleGeometry]
        ``(output_width x line_count`` bitmap, derived geometry``)``.

    Raises
    ------
    ConfigError
        On invalid dpi or toolpath parameters.
    """
    geom = compute_geometry(bitmap.width, bitmap.height, dpi, params)

    logger.info("image size: %.3f mm x %.3f mm", geom.width_mm, geom.height_mm)
    logger.info("in steps: %d x %d", geom.width_steps, geom.height_steps)
    logger.info(
        "engraving consists of %d lines (%.3f input pixels per line)",
        geom.line_count,
        geom.input_pixels_per_line,
    )
    if geom.line_count == 0 or geom.output_width == 0:
        logger.warning(
            "image is smaller than one scan line (%dx%d px); nothing to engrave",
            bitmap.width,
            bitmap.height,
        )

    logger.info(
        "scaling vertically%s using %s",
        " and horizontally" if params.quantize_horizontal else "",
        interp,
    )
    scaled = resample(bitmap, geom.output_width, geom.line_count, interp)
    return scaled, geom
