"""Cross-cutting utilities (lowest dependency layer).

    - Atomic I/O and YAML loading (fs)
    - Profile schema validation (validators)
    - Unified logging (logging_config)

No module in utils/ may import from upper layers (configs, raster, toolpath).

Convenience imports:
    from lasgrav.utils import fs, validators
    from lasgrav.utils.logging_config import setup_logging, push_context
"""

from . import fs
from . import logging_config
from . import validators

from .logging_config import pop_context, push_context, setup_logging

__all__ = [
    'fs',
    'logging_config',
    'validators',
    'setup_logging',
    'push_context',
    'pop_context',
]
