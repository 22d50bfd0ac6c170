"""Motion planner -- image-order spans to machine-space row plans.

Coordinate frame:
    Scaled-bitmap row ``y`` (0 = top of the image) becomes machine row
    ``line_count - 1 - y`` (0 = bottom, nearest the origin).  Rows are
    planned bottom-up.

    Each row's beam sits in the middle of its band::

        Y = index * mm_per_line + mm_per_line / 2

Serpentine motion:
    In bidirectional mode the direction flips after every row that is
    actually emitted.  Blank rows are skipped without touching the
    toggle, so the pattern never depends on row parity.

Precision:
    Coordinates are rounded, half away from zero, to the fewest decimal
    places that still express one machine step (1 / steps_per_mm).
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from decimal import Decimal

from lasgrav.configs.loader import HMotion, ToolpathParameters
from lasgrav.raster.spans import Row, Span
from lasgrav.toolpath.operations import Direction, PlannedSpan, RowPlan

logger = logging.getLogger(__name__)


def resolve_precision(steps_per_mm: int, override: int | None = None) -> int:
    """Decimal places used for every emitted coordinate.

    Parameters
    ----------
    steps_per_mm : int
        Machine resolution.
    override : int | None
        Forced precision; used unconditionally when given.

    Returns
    -------
    int
        ``override``, or the number of fractional digits of
        ``1 / steps_per_mm``.  Terminating reciprocals are counted
        exactly (160 -> 0.00625 -> 5).  Non-terminating ones use the
        digits of the shortest round-trip float (3 -> 16).
    """
    if override is not None:
        return override
    if steps_per_mm <= 0:
        raise ValueError(f"steps_per_mm must be positive, got {steps_per_mm}")

    # 1/n terminates iff n = 2^a * 5^b, and then needs max(a, b) digits.
    n, twos, fives = steps_per_mm, 0, 0
    while n % 2 == 0:
        n //= 2
        twos += 1
    while n % 5 == 0:
        n //= 5
        fives += 1
    if n == 1:
        return max(twos, fives)

    exponent = Decimal(repr(1.0 / steps_per_mm)).normalize().as_tuple().exponent
    return max(0, -exponent)


def quantize(value: float, precision: int) -> float:
    """Round *value* to *precision* decimals, half away from zero."""
    scale = 10 ** precision
    return math.copysign(math.floor(abs(value) * scale + 0.5), value) / scale


def flip_rows(span_rows: Sequence[Sequence[Span]]) -> list[Row]:
    """Re-index image-order rows into machine rows, bottom row first."""
    line_count = len(span_rows)
    rows = [
        Row(index=line_count - 1 - y, spans=tuple(spans))
        for y, spans in enumerate(span_rows)
    ]
    rows.reverse()
    return rows


def plan_rows(
    span_rows: Sequence[Sequence[Span]],
    params: ToolpathParameters,
    dots_per_mm: float,
) -> list[RowPlan]:
    """Plan the scan lines of a job.

    Parameters
    ----------
    span_rows : Sequence[Sequence[Span]]
        Spans per scaled-bitmap row, top row first.
    params : ToolpathParameters
        Validated machine/output settings.
    dots_per_mm : float
        Native input pixel density; sets the X pitch unless horizontal
        quantization is on (then the pitch is one line width).

    Returns
    -------
    list[RowPlan]
        Non-blank rows, bottom-up, with rounded machine coordinates.
    """
    if params.precision is not None:
        logger.info("forcing precision to %d decimal places", params.precision)
        precision = params.precision
    else:
        precision = resolve_precision(params.steps_per_mm)
        logger.info(
            "%d steps/mm requires at most %d decimal places",
            params.steps_per_mm,
            precision,
        )

    mm_per_line = params.mm_per_line
    half_line = mm_per_line / 2.0
    mm_per_pixel = mm_per_line if params.quantize_horizontal else 1.0 / dots_per_mm
    bidirectional = params.motion is HMotion.BI

    plans: list[RowPlan] = []
    odd = False
    for row in flip_rows(span_rows):
        if row.is_blank:
            continue

        rtl = bidirectional and odd
        spans = tuple(
            PlannedSpan(
                start_x=quantize(s.start * mm_per_pixel, precision),
                end_x=quantize(s.end * mm_per_pixel, precision),
            )
            for s in row.spans
        )
        plans.append(
            RowPlan(
                index=row.index,
                y=quantize(row.index * mm_per_line + half_line, precision),
                direction=Direction.RTL if rtl else Direction.LTR,
                spans=spans[::-1] if rtl else spans,
            )
        )
        odd = not odd

    logger.debug("planned %d of %d rows", len(plans), len(span_rows))
    return plans
