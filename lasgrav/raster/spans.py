"""Span extraction: threshold each scan line and run-length encode it.

A column is "on" (engrave) when its luminance is strictly below the
threshold.  Each maximal run of "on" columns becomes one ``Span`` whose
``end`` is the first "off" column after the run, or the row width when the
run touches the right edge.

Rows are independent of each other, so extraction can be spread over a
thread pool; results always come back in image row order.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial

import numpy as np

from lasgrav.configs.loader import ConfigError
from lasgrav.raster.bitmap import Bitmap

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Span:
    """Run of laser-on columns ``[start, end)`` within one scan line.

    The laser is etched from the left edge of ``start`` to the left edge
    of ``end``, so ``end`` is also where the engraving move stops.
    """

    start: int
    end: int

    def __post_init__(self) -> None:
        if not 0 <= self.start < self.end:
            raise ValueError(
                f"Span requires 0 <= start < end, got ({self.start}, {self.end})"
            )

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True, slots=True)
class Row:
    """One scan line in machine order (index 0 is the bottom line)."""

    index: int
    spans: tuple[Span, ...] = ()

    @property
    def is_blank(self) -> bool:
        return not self.spans


def extract_row_spans(samples: np.ndarray, threshold: int) -> tuple[Span, ...]:
    """Run-length encode the dark pixels of one row.

    Parameters
    ----------
    samples : np.ndarray
        1-D uint8 luminance samples, left to right.
    threshold : int
        Samples strictly below this value are "on".

    Returns
    -------
    tuple[Span, ...]
        Non-overlapping spans in increasing column order; empty for a
        blank row.
    """
    on = np.asarray(samples) < threshold
    if not on.any():
        return ()

    # Pad with "off" on both sides so every run has a rising and falling edge.
    padded = np.concatenate(([False], on, [False])).astype(np.int8)
    edges = np.flatnonzero(np.diff(padded))
    return tuple(
        Span(int(start), int(end))
        for start, end in zip(edges[0::2], edges[1::2])
    )


def extract_spans(
    bitmap: Bitmap,
    threshold: int,
    workers: int = 1,
) -> list[tuple[Span, ...]]:
    """Extract spans for every row of *bitmap*, in image row order (top first).

    Parameters
    ----------
    bitmap : Bitmap
        Scaled bitmap, one row per scan line.
    threshold : int
        Binarization threshold in [0, 255].
    workers : int
        Thread count; ``1`` runs inline.

    Raises
    ------
    ConfigError
        If the threshold is out of range or workers < 1.
    """
    if not 0 <= threshold <= 255:
        raise ConfigError(f"threshold must be in [0, 255], got {threshold}")
    if workers < 1:
        raise ConfigError(f"workers must be >= 1, got {workers}")

    rows = [bitmap.row(y) for y in range(bitmap.height)]
    extract = partial(extract_row_spans, threshold=threshold)

    if workers == 1 or len(rows) < 2:
        spans = [extract(r) for r in rows]
    else:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            spans = list(pool.map(extract, rows))

    logger.info(
        "computed thresholded image spans: %d spans over %d rows",
        sum(len(s) for s in spans),
        len(spans),
    )
    return spans
