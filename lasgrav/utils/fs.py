"""File output for G-code programs and debug images, plus profile YAML.

Every writer stages its data next to the destination and renames it into
place, so a crashed or interrupted run never leaves a truncated program
for the machine controller to pick up.

Usage:
    from lasgrav.utils import fs
    fs.atomic_write_text(out_path, gcode)
    fs.atomic_save_image(bitmap.pixels, "debug/scaled.png")
    profile = fs.load_yaml("profiles/k40.yaml")
"""

import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import numpy as np
import yaml
from PIL import Image


def ensure_dir(p: Union[str, Path]) -> Path:
    """Return *p* as a Path, creating it and its parents if needed."""
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


def _stage_and_rename(
    dest: Path,
    staging: Path,
    write: Callable[[Path], None],
    errors: tuple = (OSError,),
) -> None:
    """Run *write* against *staging*, then move it over *dest*.

    The staging file is removed again if writing or renaming fails; the
    exception is re-raised.
    """
    ensure_dir(dest.parent)
    try:
        write(staging)
        staging.replace(dest)
    except errors:
        staging.unlink(missing_ok=True)
        raise


def atomic_write_bytes(
    path: Union[str, Path],
    data: bytes,
    tmp_suffix: str = ".tmp"
) -> None:
    """Write *data* to *path* via a synced sibling file (``<name>.tmp``).

    Raises
    ------
    OSError
        If the destination cannot be written or replaced.
    """
    path = Path(path)

    def _write(staging: Path) -> None:
        with open(staging, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

    _stage_and_rename(path, path.with_suffix(path.suffix + tmp_suffix), _write)


def atomic_write_text(
    path: Union[str, Path],
    text: str,
    encoding: str = "utf-8"
) -> None:
    """Encode *text* and write it atomically.  Line endings are kept as given."""
    atomic_write_bytes(path, text.encode(encoding))


def atomic_save_image(
    img: np.ndarray,
    path: Union[str, Path],
    pil_kwargs: Optional[Dict[str, Any]] = None
) -> None:
    """Save a grayscale or RGB array as an image file, atomically.

    The staging file is ``<stem>.tmp<suffix>`` so Pillow still picks the
    format from the extension.  Arrays that are not uint8 are clipped to
    0..255 first.

    Raises
    ------
    ValueError
        If Pillow knows no format for the extension.
    OSError
        If the file cannot be written.
    """
    path = Path(path)
    if img.dtype != np.uint8:
        img = np.clip(img, 0, 255).astype(np.uint8)
    pil_img = Image.fromarray(np.ascontiguousarray(img))

    _stage_and_rename(
        path,
        path.with_name(f"{path.stem}.tmp{path.suffix}"),
        lambda staging: pil_img.save(staging, **(pil_kwargs or {})),
        errors=(OSError, ValueError),
    )


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Parse a YAML file with ``yaml.safe_load``.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    yaml.YAMLError
        If the document is malformed; the message names the file.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            return yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"{path}: {e}") from e
