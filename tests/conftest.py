"""Shared fixtures: synthetic test images written to tmp_path."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import numpy as np
import pytest
from PIL import Image


@pytest.fixture()
def write_png(tmp_path: Path) -> Callable[[np.ndarray, str], Path]:
    """Return a helper that saves a uint8 (H, W) array as a PNG."""

    def _write(arr: np.ndarray, name: str = "input.png") -> Path:
        path = tmp_path / name
        Image.fromarray(np.asarray(arr, dtype=np.uint8)).save(path)
        return path

    return _write


@pytest.fixture()
def black_2x2(write_png) -> Path:
    return write_png(np.zeros((2, 2), dtype=np.uint8), "black.png")


@pytest.fixture()
def white_2x2(write_png) -> Path:
    return write_png(np.full((2, 2), 255, dtype=np.uint8), "white.png")


@pytest.fixture()
def two_bars(write_png) -> Path:
    """60x60 white image with black bars on image rows 10 and 20, columns 0..29.

    At 254 dpi and 10 lines/mm every pixel row is exactly one scan line.
    """
    arr = np.full((60, 60), 255, dtype=np.uint8)
    arr[10, :30] = 0
    arr[20, :30] = 0
    return write_png(arr, "bars.png")
