"""Toolpath IR -- the vocabulary between the motion planner and G-code.

Every planned row is an immutable, slotted dataclass in **machine**
coordinates: millimeters, origin at the bottom-left corner, +Y up.  All
values are already rounded to the job's decimal precision, so the
emitter only formats them.

Grouping
--------
A *RowPlan* is one scan line: a Y, a travel direction and the spans to
burn, already ordered in travel direction.  Blank rows never appear.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Direction(Enum):
    """Horizontal travel direction of one scan line."""

    LTR = "->"
    RTL = "<-"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class PlannedSpan:
    """One laser-on segment of a scan line.

    Parameters
    ----------
    start_x, end_x : float
        Left and right edge in machine mm.  ``start_x <= end_x``
        regardless of travel direction.
    """

    start_x: float
    end_x: float

    def __post_init__(self) -> None:
        if self.start_x > self.end_x:
            raise ValueError(
                f"PlannedSpan requires start_x <= end_x, got "
                f"({self.start_x}, {self.end_x})"
            )


@dataclass(frozen=True, slots=True)
class RowPlan:
    """One scan line ready for emission.

    Parameters
    ----------
    index : int
        Machine row index (0 = bottom line).
    y : float
        Beam center Y in mm (middle of the line's band).
    direction : Direction
        Travel direction of every engraving move in the row.
    spans : tuple[PlannedSpan, ...]
        Spans in travel order (right-most first for ``RTL``).
        Must contain >= 1 span.
    """

    index: int
    y: float
    direction: Direction
    spans: tuple[PlannedSpan, ...]

    def __post_init__(self) -> None:
        if not self.spans:
            raise ValueError(f"RowPlan {self.index} requires >= 1 span")

    def strokes(self) -> tuple[tuple[float, float], ...]:
        """``(rapid_x, burn_to_x)`` pairs in travel order.

        Left-to-right rows rapid to each span's left edge and burn to its
        right edge; right-to-left rows do the reverse.
        """
        if self.direction is Direction.RTL:
            return tuple((s.end_x, s.start_x) for s in self.spans)
        return tuple((s.start_x, s.end_x) for s in self.spans)
