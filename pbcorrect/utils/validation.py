"""
Validation Utilities
====================
Input validation for the files and directories a correction run consumes.
All failures are raised as ConfigurationError before any stage runs.
"""

import re
from pathlib import Path
from typing import Iterable, List, Union

from loguru import logger

from pbcorrect.errors import ConfigurationError


FRG_SUFFIX_RE = re.compile(r"(\.frg|frg\.gz|frg\.bz2)$", re.IGNORECASE)

# Library names become file and directory names (temp<library>, <library>.frg)
LIBRARY_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def validate_path(
    path: Union[str, Path],
    must_exist: bool = False,
    must_be_file: bool = False,
    must_be_dir: bool = False,
) -> Path:
    """
    Validate a file path.

    Args:
        path: Path to validate
        must_exist: If True, path must exist
        must_be_file: If True, path must be a file
        must_be_dir: If True, path must be a directory

    Returns:
        Absolute Path object

    Raises:
        ConfigurationError: If path fails validation
    """
    if not path:
        raise ConfigurationError("Path cannot be empty")

    path_obj = Path(path).expanduser().absolute()

    if must_exist and not path_obj.exists():
        raise ConfigurationError(f"Path does not exist: {path}")

    if must_be_file and path_obj.exists() and not path_obj.is_file():
        raise ConfigurationError(f"Path is not a file: {path}")

    if must_be_dir and path_obj.exists() and not path_obj.is_dir():
        raise ConfigurationError(f"Path is not a directory: {path}")

    return path_obj


def validate_library_name(name: str) -> str:
    """Validate the free-format library name used for output file names."""
    name = (name or "").strip()
    if not name:
        raise ConfigurationError("Library name is required")
    if not LIBRARY_NAME_RE.match(name):
        raise ConfigurationError(
            f"Library name must be letters, digits, '.', '_' or '-': {name!r}"
        )
    return name


def validate_frg_files(frg_files: Iterable[Union[str, Path]]) -> List[Path]:
    """Validate fragment files: at least one, each existing with a .frg suffix."""
    out: List[Path] = []
    for f in frg_files:
        p = validate_path(f, must_exist=True, must_be_file=True)
        if not FRG_SUFFIX_RE.search(p.name):
            raise ConfigurationError(f"Not a fragment file (.frg, .frg.gz, .frg.bz2): {f}")
        out.append(p)

    if not out:
        raise ConfigurationError("At least one fragment (.frg) file is required")

    logger.debug("Validated {} fragment files", len(out))
    return out
