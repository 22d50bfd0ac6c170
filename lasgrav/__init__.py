"""lasgrav: raster image to laser engraver toolpath compiler.

Turns a raster image into horizontal scan-line G-code for a diode or CO2
laser engraver running in laser mode (``M3``/``M5`` with ``S`` power).

Architecture layers (strict one-way dependency):
    cli / pipeline -> toolpath/ -> raster/ -> configs/ -> utils/

Key invariants:
    - Geometry in millimeters end-to-end
    - steps/mm is an exact multiple of lines/mm (checked before any image I/O)
    - Image frame is top-left origin (+Y down); machine frame is bottom-left
      origin (+Y up).  The flip happens once, in the motion planner.
    - G-code goes to the command stream, diagnostics go to logging (stderr)
"""

__version__ = "0.3.0"

__all__ = ["configs", "raster", "toolpath", "utils", "pipeline", "cli"]
