"""
Toolpath stages: plan scan lines in machine space and emit G-code.

Modules:
    operations: Immutable row-plan IR (machine mm, bottom-left origin)
    planner: Row flip, serpentine ordering, coordinate quantization
    emitter: Row plans -> CRLF G-code text
"""

from lasgrav.toolpath.emitter import ToolpathEmitter
from lasgrav.toolpath.operations import Direction, PlannedSpan, RowPlan
from lasgrav.toolpath.planner import flip_rows, plan_rows, quantize, resolve_precision

__all__ = [
    "Direction",
    "PlannedSpan",
    "RowPlan",
    "ToolpathEmitter",
    "flip_rows",
    "plan_rows",
    "quantize",
    "resolve_precision",
]
