"""
Tool Discovery
==============
Locate the assembler and consensus toolkit binary directories.
"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Union

from loguru import logger

from pbcorrect.errors import ConfigurationError

CA_REQUIRED_TOOL = "runCA"
AMOS_REQUIRED_TOOL = "bank-transact"


@dataclass(frozen=True)
class ToolPaths:
    """Resolved binary directories for the external tools."""

    ca_bin: Path
    amos_bin: Path

    def ca(self, name: str) -> str:
        return str(self.ca_bin / name)

    def amos(self, name: str) -> str:
        return str(self.amos_bin / name)


def _has_tool(directory: Optional[Path], name: str) -> bool:
    return directory is not None and (directory / name).is_file()


def _first_with(candidates: Iterable[Optional[Path]], name: str) -> Optional[Path]:
    for c in candidates:
        if _has_tool(c, name):
            return c
    return None


def _which_dir(name: str) -> Optional[Path]:
    found = shutil.which(name)
    return Path(found).resolve().parent if found else None


def _as_path(value: Optional[Union[str, Path]]) -> Optional[Path]:
    if value is None or str(value).strip() == "":
        return None
    return Path(value).expanduser().absolute()


def _resolve(explicit: Optional[Path], fallbacks: Iterable[Optional[Path]], tool: str, label: str) -> Path:
    if explicit is not None:
        if not _has_tool(explicit, tool):
            raise ConfigurationError(f"{label} binaries: {tool} not found in {explicit}")
        return explicit

    found = _first_with(fallbacks, tool)
    if found is None:
        raise ConfigurationError(f"{label} binaries: {tool} not found (searched the default locations and PATH)")
    return found


def locate_tools(
    ca_bin: Optional[Union[str, Path]] = None,
    amos_bin: Optional[Union[str, Path]] = None,
) -> ToolPaths:
    """Resolve tool directories.

    Assembler: explicit argument, then PBC_CA_BIN, then the directory of
    runCA on PATH. Consensus toolkit: explicit argument, then PBC_AMOS_BIN,
    then <ca_bin>/../../../AMOS/bin, then the directory of bank-transact on
    PATH. An explicit directory (argument or variable) must hold the tools;
    it is never silently replaced by a later candidate.

    Raises:
        ConfigurationError: When either tool set cannot be found.
    """
    explicit_ca = _as_path(ca_bin) or _as_path(os.getenv("PBC_CA_BIN"))
    ca_dir = _resolve(explicit_ca, [_which_dir(CA_REQUIRED_TOOL)], CA_REQUIRED_TOOL, "Assembler")

    explicit_amos = _as_path(amos_bin) or _as_path(os.getenv("PBC_AMOS_BIN"))
    bundled_amos = (ca_dir / ".." / ".." / ".." / "AMOS" / "bin").resolve()
    amos_dir = _resolve(explicit_amos, [bundled_amos, _which_dir(AMOS_REQUIRED_TOOL)], AMOS_REQUIRED_TOOL, "AMOS")

    logger.info("CA: {}", ca_dir)
    logger.info("AMOS: {}", amos_dir)
    return ToolPaths(ca_bin=ca_dir, amos_bin=amos_dir)
