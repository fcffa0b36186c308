"""
Partition Merge
===============
Concatenate per-partition consensus output into one file.

Partitions are merged in descending numeric index order (N, N-1, ..., 1)
whatever order they finished in, so the corrected output is reproducible.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import List

from pbcorrect.errors import PipelineError


def partition_merge_order(partitions: int) -> List[int]:
    return list(range(int(partitions), 0, -1))


def concatenate_partitions(directory: Path, partitions: int, suffix: str, output: Path) -> List[Path]:
    """Write `<N><suffix>` .. `<1><suffix>` from directory into output.

    Returns:
        The source files, in the order they were written.

    Raises:
        PipelineError: When a partition output file is missing.
    """
    directory = Path(directory)
    output = Path(output)
    sources = [directory / f"{i}{suffix}" for i in partition_merge_order(partitions)]

    missing = [str(s) for s in sources if not s.is_file()]
    if missing:
        raise PipelineError(f"Missing partition output: {', '.join(missing)}")

    tmp = output.with_name(output.name + ".tmp")
    with open(tmp, "wb") as out:
        for source in sources:
            with open(source, "rb") as f:
                shutil.copyfileobj(f, out)
    os.replace(tmp, output)
    return sources
