"""
Assembler Spec File Options
===========================
Read the `key = value` options of an assembler spec file.

Only a handful of keys matter to the correction driver:
- sge            grid submission options
- sgeScript      grid options for the correction step
- useGrid        force grid mode on (1) or off (0)
- cnsConcurrency local concurrency of the consensus stage
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Union

from loguru import logger

from pbcorrect.errors import ConfigurationError


def read_spec_options(spec_file: Union[str, Path]) -> Dict[str, str]:
    """Return the options set in a spec file.

    Blank lines, comment lines and lines without '=' are ignored. The value is
    everything after the first '=', so options such as `sge = -l mem=4G` keep
    their embedded '='. Later assignments override earlier ones.
    """
    path = Path(spec_file)
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise ConfigurationError(f"Cannot read spec file {path}: {e}") from e

    options: Dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not key or " " in key:
            continue
        options[key] = value.strip()

    logger.debug("Read {} options from spec file {}", len(options), path)
    return options


def spec_int(options: Dict[str, str], key: str, default: Optional[int] = None) -> Optional[int]:
    """Return an integer option, or default when it is unset."""
    value = options.get(key, "")
    if value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Spec option {key} must be an integer, got {value!r}")
