"""
Dispatch Backend Contract
=========================
Shared synchronous contract for running a stage's wrapper script.

A backend runs the script once (unpartitioned request) or once per array
index 1..array_size (partitioned request) and returns only when every
invocation has terminated. Exit codes are reported but never interpreted:
stages decide success from their marker files.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class DispatchRequest:
    """One stage dispatch."""

    script: Path
    job_name: str
    cwd: Path
    array_size: Optional[int] = None
    # Local mode: maximum concurrent invocations (backend default when None)
    concurrency: Optional[int] = None
    # Grid mode: extra submission options for this stage only
    grid_options: str = ""

    @property
    def partitioned(self) -> bool:
        return self.array_size is not None

    def indices(self) -> List[int]:
        if self.array_size is None:
            return []
        return list(range(1, self.array_size + 1))


@dataclass(frozen=True)
class DispatchResult:
    """What a backend observed while running a request."""

    backend: str
    invocations: int
    returncodes: Tuple[Optional[int], ...] = ()


class DispatchBackend(ABC):
    """Execution strategy for stage wrapper scripts."""

    name: str = "base"

    @abstractmethod
    def dispatch(self, request: DispatchRequest) -> DispatchResult:
        """Run the request and block until all invocations have finished."""
        ...
