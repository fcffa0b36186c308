"""
Stage Markers
=============
`<name>.success` files whose presence means "this stage (or partition) is
complete". They are the only completion state shared between reruns of the
driver and between concurrently running partitions.

Markers are created atomically: content goes to `<marker>.tmp` first and is
renamed into place, so a crash can leave a stray .tmp but never a marker
for unfinished work. Markers are never deleted by the pipeline.
"""

from __future__ import annotations

import os
import shlex
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List

MARKER_SUFFIX = ".success"


def marker_path(directory: Path, name: str) -> Path:
    return Path(directory) / f"{name}{MARKER_SUFFIX}"


def partition_marker_path(directory: Path, index: int) -> Path:
    return marker_path(directory, str(index))


def _tmp_path(marker: Path) -> Path:
    return marker.with_name(marker.name + ".tmp")


def marker_exists(marker: Path) -> bool:
    return Path(marker).is_file()


def missing_markers(markers: Iterable[Path]) -> List[Path]:
    return [m for m in markers if not marker_exists(m)]


def write_marker(marker: Path) -> Path:
    """Atomically create a marker file."""
    marker = Path(marker)
    marker.parent.mkdir(parents=True, exist_ok=True)
    tmp = _tmp_path(marker)
    tmp.write_text(datetime.now(timezone.utc).isoformat() + "\n", encoding="utf-8")
    os.replace(tmp, marker)
    return marker


def shell_write_marker(marker: Path) -> str:
    """Shell snippet that atomically creates a marker (for generated wrappers)."""
    tmp = shlex.quote(str(_tmp_path(Path(marker))))
    return f"touch {tmp} && mv {tmp} {shlex.quote(str(marker))}"
