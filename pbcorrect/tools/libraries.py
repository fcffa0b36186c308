"""
Library Classification
======================
Inspect the assembly store to find the library to correct and the range of
reference libraries used to correct it.

The store-introspection tool is queried twice:
- `gatekeeper -dumpinfo <store>`: the first token of the first line mentioning
  LIB is the number of libraries.
- `gatekeeper -isfeatureset <i> <feature> <store>`: exit status 0 means library
  i is flagged for correction.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List

from loguru import logger

from pbcorrect.config import CORRECTION
from pbcorrect.errors import LibraryClassificationError
from pbcorrect.tools.commands import capture_command, command_succeeds
from pbcorrect.utils.schema_validation import validate_library_assignment


@dataclass(frozen=True)
class LibraryAssignment:
    """Which store library is corrected and which libraries serve as reference."""

    library_count: int
    target: int
    reference_min: int
    reference_max: int

    @property
    def reference_range(self) -> str:
        return f"{self.reference_min}-{self.reference_max}"

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "schema_version": "1.0",
            "library_count": self.library_count,
            "target": self.target,
            "reference_min": self.reference_min,
            "reference_max": self.reference_max,
        }
        validate_library_assignment(payload)
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "LibraryAssignment":
        validate_library_assignment(payload)
        return cls(
            library_count=int(payload["library_count"]),
            target=int(payload["target"]),
            reference_min=int(payload["reference_min"]),
            reference_max=int(payload["reference_max"]),
        )


def parse_library_count(dumpinfo: str) -> int:
    """Extract the library count from store dump output."""
    for line in dumpinfo.splitlines():
        if "LIB" not in line:
            continue
        fields = line.split()
        if fields and fields[0].isdigit():
            return int(fields[0])
    raise LibraryClassificationError("Could not read the library count from the store dump")


def assign_libraries(library_count: int, flagged: List[int]) -> LibraryAssignment:
    """Build the assignment from the set of libraries flagged for correction."""
    if len(flagged) != 1:
        raise LibraryClassificationError(
            f"Expected exactly one library flagged for correction, found {len(flagged)}: {flagged}"
        )
    target = flagged[0]

    references = [i for i in range(1, library_count + 1) if i != target]
    if not references:
        raise LibraryClassificationError("No reference libraries found to correct against")

    ref_min, ref_max = references[0], references[-1]
    if ref_min < target < ref_max:
        logger.warning(
            "Library {} to correct lies inside reference range {}-{}",
            target,
            ref_min,
            ref_max,
        )

    return LibraryAssignment(
        library_count=library_count,
        target=target,
        reference_min=ref_min,
        reference_max=ref_max,
    )


def classify_libraries(
    gatekeeper: str,
    store: Path,
    cwd: Path,
    *,
    feature: str = CORRECTION.FEATURE_FLAG,
) -> LibraryAssignment:
    """Query the store and classify its libraries."""
    gk = shlex.quote(gatekeeper)
    st = shlex.quote(str(store))

    count = parse_library_count(capture_command(f"{gk} -dumpinfo {st}", cwd))

    flagged = [
        i
        for i in range(1, count + 1)
        if command_succeeds(f"{gk} -isfeatureset {i} {shlex.quote(feature)} {st}", cwd)
    ]

    assignment = assign_libraries(count, flagged)
    logger.info(
        "Correcting library {} of {} against reference libraries {}",
        assignment.target,
        count,
        assignment.reference_range,
    )
    return assignment
