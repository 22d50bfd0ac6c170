"""
Raster stages: decode, scale to scan lines, extract laser-on spans.

Modules:
    bitmap: Image file -> immutable 8-bit luminance Bitmap (Pillow)
    scaler: Physical sizing and resampling to one row per scan line
    spans: Threshold + run-length encoding into Spans
"""

from lasgrav.raster.bitmap import Bitmap, ImageIOError, load_bitmap, save_bitmap
from lasgrav.raster.scaler import ScaleGeometry, compute_geometry, resample, scale_bitmap
from lasgrav.raster.spans import Row, Span, extract_row_spans, extract_spans

__all__ = [
    "Bitmap",
    "ImageIOError",
    "Row",
    "ScaleGeometry",
    "Span",
    "compute_geometry",
    "extract_row_spans",
    "extract_spans",
    "load_bitmap",
    "resample",
    "save_bitmap",
    "scale_bitmap",
]
