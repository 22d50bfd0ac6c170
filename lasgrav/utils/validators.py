"""YAML schema validation for engraving profiles.

A profile bundles the import, output and machine settings that would
otherwise be passed as CLI flags.  Validation here is per-field (types,
ranges, enum names); cross-field rules such as steps/mm being a multiple
of lines/mm live in ``lasgrav.configs.loader`` so that CLI overrides are
checked by the same code.

Units:
    - Resolution: dots per inch (import), lines/mm and steps/mm (output)
    - Feed: mm/min, passed through to the ``F`` word untouched
    - Power: raw ``S`` word value (controller specific, e.g. 0..1000 on GRBL)

Example profile (lasgrav_profile.v1)::

    schema: lasgrav_profile.v1
    import:
      dpi: 300.0
      threshold: 128
      interp: gaussian
    output:
      lines_per_mm: 8
      feed: 1000
      power: 1000
      motion: bi
      precision: null
      quantize_horizontal: false
    machine:
      steps_per_mm: 160
"""

from pathlib import Path
from typing import Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


PROFILE_SCHEMA = "lasgrav_profile.v1"


class ImportSection(BaseModel):
    """How the source image is sampled."""
    model_config = ConfigDict(extra="forbid")

    dpi: float = Field(300.0, gt=0, description="Input resolution (dots per inch)")
    threshold: int = Field(128, ge=0, le=255, description="Luminance below this is engraved")
    interp: Literal["nearest", "gaussian", "lanczos3", "cubic"] = Field(
        "gaussian", description="Resampling filter"
    )


class OutputSection(BaseModel):
    """Engraving density, speeds and G-code formatting."""
    model_config = ConfigDict(extra="forbid")

    lines_per_mm: int = Field(8, gt=0, description="Scan lines per mm")
    feed: int = Field(1000, gt=0, description="Engraving feed rate (mm/min)")
    power: int = Field(1000, gt=0, description="Laser S value for 'on' spans")
    motion: Literal["uni", "bi"] = Field("bi", description="Horizontal motion strategy")
    precision: Optional[int] = Field(None, ge=0, le=15, description="Forced decimal places")
    quantize_horizontal: bool = Field(False, description="Match X resolution to lines/mm")


class MachineSection(BaseModel):
    """Machine motion resolution."""
    model_config = ConfigDict(extra="forbid")

    steps_per_mm: int = Field(160, gt=0, description="Stepper steps per mm")


class ProfileV1(BaseModel):
    """Engraving profile schema v1."""
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    schema_version: str = Field(PROFILE_SCHEMA, alias="schema", description="Schema version")
    import_: ImportSection = Field(default_factory=ImportSection, alias="import")
    output: OutputSection = Field(default_factory=OutputSection)
    machine: MachineSection = Field(default_factory=MachineSection)

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != PROFILE_SCHEMA:
            raise ValueError(f"Expected schema '{PROFILE_SCHEMA}', got '{v}'")
        return v


def load_profile_file(path: Union[str, Path]) -> ProfileV1:
    """Load and validate an engraving profile from YAML.

    Parameters
    ----------
    path : str or Path
        Path to a lasgrav_profile.v1 YAML file

    Returns
    -------
    ProfileV1
        Validated profile model

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ValueError
        If the file is empty or fails validation (message names the path)
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Profile not found: {path}")

    try:
        data = fs.load_yaml(path)
    except yaml.YAMLError as e:
        raise ValueError(f"Profile is not valid YAML: {e}") from e
    if data is None:
        raise ValueError(f"Empty profile file: {path}")
    try:
        return ProfileV1.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Profile validation failed at {path}: {e}") from e
