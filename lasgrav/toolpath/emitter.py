"""G-code emitter -- row plans to laser-mode motion commands.

Protocol (every line CRLF-terminated)::

    G90                      absolute positioning, once
    G0 X0 Y0 F<feed>         park at the origin with the laser off
    M3 S0                    laser armed at zero power
    ( row 12: -> )           per emitted row: index and direction
    G0 X<x> Y<y> S0          rapid to the first span edge, laser off
    G1 X<x> S<power>         burn across the span
    G0 X<x> S0               later spans in the row carry Y implicitly
    G1 X<x> S<power>
    M5                       laser off, end of program

Coordinates are printed with exactly the job's decimal precision (no
trailing-zero trimming) and are always in millimeters.  The emitter holds
no state between calls; the same plans always produce the same text.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from io import StringIO
from typing import TextIO

from lasgrav.configs.loader import ToolpathParameters
from lasgrav.toolpath.operations import RowPlan
from lasgrav.toolpath.planner import resolve_precision

logger = logging.getLogger(__name__)

EOL = "\r\n"


class ToolpathEmitter:
    """Serialize ``RowPlan``s into G-code.

    Parameters
    ----------
    params : ToolpathParameters
        Supplies feed, power and the decimal precision (explicit or
        derived from steps/mm exactly as the planner does).
    """

    def __init__(self, params: ToolpathParameters) -> None:
        self._params = params
        self._precision = resolve_precision(params.steps_per_mm, params.precision)

    @property
    def precision(self) -> int:
        return self._precision

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def emit(self, plans: Iterable[RowPlan], stream: TextIO) -> int:
        """Write the complete program for *plans* to *stream*.

        Returns
        -------
        int
            Number of rows written.
        """
        self._write_header(stream)
        count = 0
        for plan in plans:
            self._write_row(plan, stream)
            count += 1
        self._write_footer(stream)
        logger.debug("emitted %d rows", count)
        return count

    def generate(self, plans: Iterable[RowPlan]) -> str:
        """Return the complete program for *plans* as a string."""
        buf = StringIO(newline="")
        self.emit(plans, buf)
        return buf.getvalue()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _fmt(self, value: float) -> str:
        return f"{value:.{self._precision}f}"

    def _write_header(self, out: TextIO) -> None:
        out.write("G90" + EOL)
        out.write(f"G0 X0 Y0 F{self._params.feed}" + EOL)
        out.write("M3 S0" + EOL)

    def _write_row(self, plan: RowPlan, out: TextIO) -> None:
        power = self._params.power
        out.write(f"( row {plan.index}: {plan.direction} )" + EOL)

        for i, (rapid_x, burn_x) in enumerate(plan.strokes()):
            if i == 0:
                out.write(f"G0 X{self._fmt(rapid_x)} Y{self._fmt(plan.y)} S0" + EOL)
            else:
                out.write(f"G0 X{self._fmt(rapid_x)} S0" + EOL)
            out.write(f"G1 X{self._fmt(burn_x)} S{power}" + EOL)

    def _write_footer(self, out: TextIO) -> None:
        out.write("M5" + EOL)
