"""Engraving profile loading and validation."""

from lasgrav.configs.loader import (
    MM_PER_INCH,
    ConfigError,
    HMotion,
    ImportOptions,
    Interp,
    Profile,
    ToolpathParameters,
    load_profile,
    parse_interp,
    parse_motion,
    validate_import_options,
    validate_toolpath_parameters,
)

__all__ = [
    "MM_PER_INCH",
    "ConfigError",
    "HMotion",
    "ImportOptions",
    "Interp",
    "Profile",
    "ToolpathParameters",
    "load_profile",
    "parse_interp",
    "parse_motion",
    "validate_import_options",
    "validate_toolpath_parameters",
]
