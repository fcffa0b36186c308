"""Backend selection, done once at pipeline start."""

from __future__ import annotations

from typing import Optional

from loguru import logger

from pbcorrect.dispatch.base import DispatchBackend
from pbcorrect.dispatch.grid import GridBackend, GridSettings
from pbcorrect.dispatch.local import LocalBackend


def select_backend(grid: Optional[GridSettings], *, concurrency: int = 1) -> DispatchBackend:
    """Return a GridBackend when grid mode is enabled, else a LocalBackend."""
    if grid is not None and grid.enabled:
        logger.info("Dispatching stages to the grid via {}", grid.submit_command)
        return GridBackend(grid)
    return LocalBackend(concurrency=concurrency)
