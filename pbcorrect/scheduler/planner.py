"""
Partition Planner
=================
Chooses a (partitions, threads) pair that fits under the process's open file
descriptor ceiling.

Every partition's consensus step keeps several files open at once, and the
correction tool opens one layout file per partition while it runs, so the
partition count is bounded by the soft RLIMIT_NOFILE minus a reserve.
"""

from __future__ import annotations

import resource
import sys
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from pbcorrect.config import PARTITIONS
from pbcorrect.errors import ConfigurationError


@dataclass(frozen=True)
class PartitionPlan:
    """Resource-safe partitioning for one pipeline run."""

    partitions: int
    threads: int
    file_descriptor_ceiling: int
    reserved: int

    def __post_init__(self) -> None:
        if self.partitions <= self.threads:
            raise ValueError("partitions must be greater than threads")
        if self.file_descriptor_ceiling - self.reserved <= self.partitions:
            raise ValueError("partitions exceed the file descriptor budget")

    def to_dict(self) -> dict:
        return {
            "partitions": self.partitions,
            "threads": self.threads,
            "file_descriptor_ceiling": self.file_descriptor_ceiling,
            "reserved": self.reserved,
        }


def open_file_limit() -> int:
    """Return the soft limit on open file descriptors for this process."""
    soft, _hard = resource.getrlimit(resource.RLIMIT_NOFILE)
    if soft == resource.RLIM_INFINITY:
        return sys.maxsize
    return int(soft)


def plan_partitions(
    partitions: int,
    threads: int,
    *,
    ceiling: Optional[int] = None,
    base_reserve: int = PARTITIONS.BASE_RESERVE,
) -> PartitionPlan:
    """Adjust requested partitions/threads to a safe plan.

    Args:
        partitions: Requested number of partitions.
        threads: Requested correction threads (values below 1 become 1).
        ceiling: Descriptor ceiling; defaults to the current soft limit.
        base_reserve: Descriptors reserved for non-partition use.

    Returns:
        PartitionPlan with partitions > threads and
        partitions + reserved < ceiling.

    Raises:
        ConfigurationError: When the ceiling is too low for any valid plan.
    """
    partitions = int(partitions)
    threads = max(1, int(threads))
    if ceiling is None:
        ceiling = open_file_limit()
    reserve = base_reserve + threads

    if ceiling - reserve <= partitions:
        partitions = ceiling - reserve - 1
        if threads >= partitions:
            threads = partitions - 1
            reserve = base_reserve + threads
        logger.warning(
            "File handle limit of {} prevents using requested partitions. Reset partitions to {}. "
            "If you want more partitions, reset the limit and try again.",
            ceiling,
            partitions,
        )

    if partitions <= threads:
        partitions = threads + 1
        logger.warning(
            "Number of partitions should be > # threads. Adjusted partitions to be {}.",
            partitions,
        )

        if partitions + reserve >= ceiling:
            threads = (ceiling - base_reserve - 2) // 2
            partitions = threads + 1
            reserve = base_reserve + threads
            logger.warning(
                "File handle limit of {} cannot hold the requested threads. Reset threads to {} and partitions to {}.",
                ceiling,
                threads,
                partitions,
            )

    if threads < 1 or partitions + reserve >= ceiling:
        raise ConfigurationError(
            f"File handle limit of {ceiling} is too low to run with {base_reserve} reserved descriptors; "
            "raise the limit (ulimit -n) and try again."
        )

    return PartitionPlan(
        partitions=partitions,
        threads=threads,
        file_descriptor_ceiling=ceiling,
        reserved=reserve,
    )
