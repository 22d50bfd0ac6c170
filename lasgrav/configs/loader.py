"""Configuration for the raster-to-toolpath compiler.

Holds the typed, frozen settings every pipeline stage reads, plus the
validation that must pass before any image is opened.  Settings come
from a YAML profile (``default.yaml`` ships alongside this module) and
may be overridden field by field from the command line.

The one hard machine invariant: ``steps_per_mm`` must be an exact integer
multiple of ``lines_per_mm``.  Otherwise an output line does not map to a
whole number of machine steps and no valid toolpath exists.

Usage::

    from lasgrav.configs.loader import load_profile
    profile = load_profile()                    # shipped default
    profile = load_profile("profiles/k40.yaml") # explicit path
    params = dataclasses.replace(profile.toolpath, feed=1500)
    validate_toolpath_parameters(params)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from lasgrav.utils.validators import ProfileV1, load_profile_file

logger = logging.getLogger(__name__)

MM_PER_INCH = 25.4


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


# ---------------------------------------------------------------------------
# Enumerated choices
# ---------------------------------------------------------------------------


class Interp(Enum):
    """Resampling filter used when mapping pixels onto scan lines."""

    NEAREST = "nearest"
    GAUSSIAN = "gaussian"
    LANCZOS3 = "lanczos3"
    CUBIC = "cubic"

    def __str__(self) -> str:
        return self.value


class HMotion(Enum):
    """Horizontal motion strategy.

    Bidirectional is fastest; unidirectional avoids X backlash artifacts.
    """

    UNI = "uni"
    BI = "bi"

    def __str__(self) -> str:
        return self.value


def parse_interp(name: str | Interp) -> Interp:
    """Return the ``Interp`` for *name* or raise ``ConfigError``."""
    if isinstance(name, Interp):
        return name
    try:
        return Interp(name)
    except ValueError:
        raise ConfigError(
            f"Unknown interpolation '{name}'. "
            f"Available: {[i.value for i in Interp]}"
        ) from None


def parse_motion(name: str | HMotion) -> HMotion:
    """Return the ``HMotion`` for *name* or raise ``ConfigError``."""
    if isinstance(name, HMotion):
        return name
    try:
        return HMotion(name)
    except ValueError:
        raise ConfigError(
            f"Unknown motion mode '{name}'. "
            f"Available: {[m.value for m in HMotion]}"
        ) from None


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ImportOptions:
    """How the source image is sampled.

    ``dpi`` maps the pixel grid onto millimeters; change it to scale the
    engraving.  Pixels with luminance strictly below ``threshold`` are
    engraved.
    """

    dpi: float = 300.0
    threshold: int = 128
    interp: Interp = Interp.GAUSSIAN

    @property
    def dots_per_mm(self) -> float:
        return self.dpi / MM_PER_INCH


@dataclass(frozen=True)
class ToolpathParameters:
    """Machine and output settings.  Feed is mm/min, power is the raw ``S`` word."""

    steps_per_mm: int = 160
    lines_per_mm: int = 8
    feed: int = 1000
    power: int = 1000
    motion: HMotion = HMotion.BI
    precision: int | None = None
    quantize_horizontal: bool = False

    @property
    def steps_per_line(self) -> int:
        """Machine steps per scan line.  Only meaningful once validated."""
        return self.steps_per_mm // self.lines_per_mm

    @property
    def mm_per_line(self) -> float:
        return 1.0 / self.lines_per_mm


@dataclass(frozen=True)
class Profile:
    """A complete engraving profile."""

    import_options: ImportOptions = field(default_factory=ImportOptions)
    toolpath: ToolpathParameters = field(default_factory=ToolpathParameters)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_import_options(opts: ImportOptions) -> None:
    """Check sampling settings.

    Raises
    ------
    ConfigError
        On non-positive dpi or a threshold outside 0..255.
    """
    if not opts.dpi > 0:
        raise ConfigError(f"DPI must be positive, but was set as: {opts.dpi}")
    if not 0 <= opts.threshold <= 255:
        raise ConfigError(
            f"threshold must be in [0, 255], got {opts.threshold}"
        )
    if not isinstance(opts.interp, Interp):
        raise ConfigError(f"interp must be an Interp, got {opts.interp!r}")


def validate_toolpath_parameters(params: ToolpathParameters) -> None:
    """Check machine/output settings, including steps/lines divisibility.

    Raises
    ------
    ConfigError
        On zero or negative densities, rates or power, an out-of-range
        precision, or when steps/mm is not a multiple of lines/mm.
    """
    if params.steps_per_mm <= 0:
        raise ConfigError("steps/mm must be positive.")
    if params.lines_per_mm <= 0:
        raise ConfigError("lines/mm must be positive.")
    if params.steps_per_mm % params.lines_per_mm != 0:
        raise ConfigError(
            f"can't evenly divide {params.steps_per_mm} steps/mm "
            f"into {params.lines_per_mm} lines"
        )
    if params.feed <= 0:
        raise ConfigError(f"feed must be positive, got {params.feed}")
    if params.power <= 0:
        raise ConfigError(f"power must be positive, got {params.power}")
    if params.precision is not None and not 0 <= params.precision <= 15:
        raise ConfigError(
            f"precision must be in [0, 15] decimal places, got {params.precision}"
        )
    if not isinstance(params.motion, HMotion):
        raise ConfigError(f"motion must be an HMotion, got {params.motion!r}")


def validate_profile(profile: Profile) -> None:
    validate_import_options(profile.import_options)
    validate_toolpath_parameters(profile.toolpath)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def profile_from_model(model: ProfileV1) -> Profile:
    """Convert a schema-validated profile model into frozen dataclasses."""
    imp = model.import_
    out = model.output
    return Profile(
        import_options=ImportOptions(
            dpi=float(imp.dpi),
            threshold=int(imp.threshold),
            interp=parse_interp(imp.interp),
        ),
        toolpath=ToolpathParameters(
            steps_per_mm=int(model.machine.steps_per_mm),
            lines_per_mm=int(out.lines_per_mm),
            feed=int(out.feed),
            power=int(out.power),
            motion=parse_motion(out.motion),
            precision=out.precision,
            quantize_horizontal=bool(out.quantize_horizontal),
        ),
    )


def load_profile(path: str | Path | None = None) -> Profile:
    """Load and validate an engraving profile from YAML.

    Parameters
    ----------
    path : str | Path | None
        Profile path.  ``None`` loads ``default.yaml`` shipped alongside
        this module.

    Returns
    -------
    Profile
        Fully validated, frozen profile.

    Raises
    ------
    ConfigError
        If the file is missing, malformed, or fails validation.
    """
    if path is None:
        path = Path(__file__).parent / "default.yaml"
    else:
        path = Path(path)

    logger.debug("Loading profile from %s", path)

    try:
        model = load_profile_file(path)
    except FileNotFoundError as exc:
        raise ConfigError(f"Profile file not found: {path}") from exc
    except ValueError as exc:
        # pydantic and YAML errors both arrive as ValueError subclasses
        raise ConfigError(str(exc)) from exc

    profile = profile_from_model(model)
    validate_profile(profile)
    return profile
