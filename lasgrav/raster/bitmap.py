"""Bitmap normalization: image file -> immutable 8-bit luminance grid.

Decoding and color conversion are delegated to Pillow.  The file format
is detected from content, not from the extension.  Color images are
reduced to luma with Rec. 709 weights; alpha is dropped, not composited.

The resulting ``Bitmap`` knows nothing about physical units.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError

from lasgrav.utils import fs

logger = logging.getLogger(__name__)

# Rec. 709 luma as a Pillow RGB -> L conversion matrix.
REC709_LUMA = (0.2126, 0.7152, 0.0722, 0.0)

_GRAY_MODES = {"1", "L", "LA", "La"}

# Full-scale value of each wide grayscale mode; samples are rescaled, not clipped.
_WIDE_FULL_SCALE = {"I": 65535.0, "F": 1.0}


class ImageIOError(OSError):
    """Raised when an image cannot be read, decoded or written.

    The message names the operation and the offending path.
    """

    pass


@dataclass(frozen=True)
class Bitmap:
    """Row-major 8-bit luminance samples.

    Parameters
    ----------
    pixels : np.ndarray
        ``(height, width)`` uint8 array.  Stored read-only.
    """

    pixels: np.ndarray

    def __post_init__(self) -> None:
        arr = np.asarray(self.pixels)
        if arr.ndim != 2:
            raise ValueError(f"Bitmap must be 2-D (H, W), got shape {arr.shape}")
        if arr.dtype != np.uint8:
            raise ValueError(f"Bitmap must be uint8, got {arr.dtype}")
        arr = arr.copy()
        arr.flags.writeable = False
        object.__setattr__(self, "pixels", arr)

    @classmethod
    def blank(cls, width: int, height: int, value: int = 255) -> Bitmap:
        return cls(np.full((height, width), value, dtype=np.uint8))

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    def row(self, y: int) -> np.ndarray:
        """Samples of image row *y* (0 = top)."""
        return self.pixels[y]

    @property
    def is_empty(self) -> bool:
        return self.pixels.size == 0

    def to_image(self) -> Image.Image:
        """Copy into a mode ``L`` Pillow image.  The bitmap must be non-empty."""
        return Image.fromarray(np.ascontiguousarray(self.pixels))


def _wide_to_luma(img: Image.Image) -> Image.Image:
    """Rescale a 16-bit integer or float grayscale image to 8 bits.

    Integer modes (``I``, ``I;16``, ...) are treated as 0..65535, so
    v -> v / 257.  Float mode ``F`` is treated as 0.0..1.0.
    """
    full_scale = _WIDE_FULL_SCALE["F" if img.mode == "F" else "I"]
    arr = np.asarray(img, dtype=np.float64)
    scaled = np.clip(arr, 0.0, full_scale) * (255.0 / full_scale)
    return Image.fromarray(np.rint(scaled).astype(np.uint8))


def to_luma(img: Image.Image) -> Image.Image:
    """Convert any Pillow image to mode ``L``."""
    if img.mode == "L":
        return img
    if img.mode == "F" or img.mode.startswith("I"):
        return _wide_to_luma(img)
    if img.mode in _GRAY_MODES:
        return img.convert("L")
    return img.convert("RGB").convert("L", matrix=REC709_LUMA)


def load_bitmap(path: str | Path) -> Bitmap:
    """Decode an image file into a luminance ``Bitmap``.

    Parameters
    ----------
    path : str | Path
        Image file in any format Pillow can identify.

    Returns
    -------
    Bitmap
        Luminance samples at the file's native pixel grid.

    Raises
    ------
    ImageIOError
        If the file is missing, unreadable or cannot be decoded.
    """
    path = Path(path)
    try:
        img = Image.open(path)
    except (UnidentifiedImageError, Image.DecompressionBombError) as exc:
        raise ImageIOError(f"decoding image file {path}: {exc}") from exc
    except OSError as exc:
        raise ImageIOError(f"loading image file {path}: {exc}") from exc

    with img:
        try:
            img.load()
            luma = to_luma(img)
        except (OSError, ValueError) as exc:
            raise ImageIOError(f"decoding image file {path}: {exc}") from exc
        pixels = np.asarray(luma, dtype=np.uint8)

    logger.debug("Loaded %s (%s, %dx%d)", path, img.mode, pixels.shape[1], pixels.shape[0])
    return Bitmap(pixels)


def save_bitmap(bitmap: Bitmap, path: str | Path) -> None:
    """Write *bitmap* to *path*; the extension selects the format.

    Raises
    ------
    ImageIOError
        If the file cannot be written or the extension is unknown.
    """
    path = Path(path)
    if bitmap.is_empty:
        raise ImageIOError(
            f"writing intermediate output to {path}: "
            f"image is empty ({bitmap.width}x{bitmap.height})"
        )
    try:
        fs.atomic_save_image(bitmap.pixels, path)
    except (OSError, ValueError) as exc:
        raise ImageIOError(f"writing intermediate output to {path}: {exc}") from exc
    logger.info("Wrote intermediate image to %s", path)
