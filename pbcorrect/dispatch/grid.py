"""
Grid Dispatch
=============
Submits wrapper scripts to a batch scheduler (SGE-style qsub) and blocks
until the scheduler reports the job, or every task of a task array, finished.

A partitioned request becomes a single task-array submission (-t 1-N); the
scheduler load-balances the tasks and each task reads its index from the
task id variable (GRID.TASK_ID_VAR).
"""

from __future__ import annotations

import shlex
import subprocess
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from loguru import logger

from pbcorrect.config import GRID
from pbcorrect.dispatch.base import DispatchBackend, DispatchRequest, DispatchResult
from pbcorrect.errors import ToolFailedError
from pbcorrect.utils.subprocess_env import build_tool_env


@dataclass(frozen=True)
class GridSettings:
    """Grid parameters for one run. Option strings are passed through verbatim."""

    enabled: bool = False
    options: str = ""
    correction_options: str = ""
    submit_command: str = GRID.SUBMIT_COMMAND

    def store_builder_param(self) -> str:
        """sge= parameter for the store builder, forcing synchronous nested jobs."""
        return store_builder_grid_param(self.options)


def store_builder_grid_param(options: str = "") -> str:
    opts = f"{options} -sync y" if options else " -sync y"
    return f'sge="{opts}" sgePropagateHold={GRID.PROPAGATE_HOLD}'


def resolve_grid_settings(
    spec_options: Dict[str, str],
    *,
    sge: Optional[str] = None,
    sge_correction: Optional[str] = None,
) -> GridSettings:
    """Combine command-line grid options with spec file options.

    Command-line values win. useGrid in the spec file forces grid mode on or
    off; without it, grid mode is on whenever sge options were supplied.
    """
    options = sge if sge else spec_options.get("sge", "")
    correction_options = sge_correction if sge_correction else spec_options.get("sgeScript", "")

    use_grid = spec_options.get("useGrid", "").strip()
    if use_grid:
        enabled = use_grid == "1"
    else:
        enabled = sge is not None or "sge" in spec_options

    return GridSettings(
        enabled=enabled,
        options=options,
        correction_options=correction_options,
    )


class GridBackend(DispatchBackend):
    """Synchronous batch submission."""

    name = "grid"

    def __init__(self, settings: GridSettings):
        self.settings = settings

    def build_command(self, request: DispatchRequest) -> List[str]:
        argv: List[str] = [self.settings.submit_command]
        argv.extend(shlex.split(self.settings.options))
        argv.extend(shlex.split(request.grid_options))
        argv.extend(["-sync", "y", "-cwd", "-N", request.job_name])
        if request.partitioned:
            argv.extend(["-t", f"1-{request.array_size}"])
        argv.extend(["-j", "y", "-o", "/dev/null", str(request.script)])
        return argv

    def dispatch(self, request: DispatchRequest) -> DispatchResult:
        argv = self.build_command(request)
        command = shlex.join(argv)
        started = time.monotonic()
        logger.info("Submitting {} to the grid:\n{}", request.job_name, command)

        try:
            result = subprocess.run(
                argv,
                cwd=str(request.cwd),
                env=build_tool_env(),
                stdin=subprocess.DEVNULL,
            )
        except OSError as e:
            logger.error("Grid submission could not start: {}", e)
            raise ToolFailedError(command, 127, request.cwd) from e

        logger.info(
            "Grid job {} finished ({:.0f} seconds)",
            request.job_name,
            time.monotonic() - started,
        )
        if result.returncode != 0:
            logger.warning(
                "Grid submission for {} exited with status {}",
                request.job_name,
                result.returncode,
            )

        return DispatchResult(
            backend=self.name,
            invocations=request.array_size or 1,
            returncodes=(int(result.returncode),),
        )
