"""
Pipeline Stages
===============
A stage is a named, idempotent unit of work whose completion is recorded by
one or more `.success` markers in the scratch directory.

State machine per instance:
- NOT_STARTED -> COMPLETE when every marker already exists (nothing runs)
- NOT_STARTED -> WRAPPER_GENERATED -> DISPATCHED -> COMPLETE | FAILED

FAILED is terminal: the stage raises and the orchestrator stops. There is no
automatic retry; deleting the named retry artifact (or markers) and rerunning
the driver is the recovery path.

Stage kinds:
- LocalStage: work done by the control process itself, marker written last
- CommandStage: a LocalStage running fixed command lines
- WrapperStage: renders a wrapper script and hands it to a DispatchBackend
- PartitionedStage: a WrapperStage dispatched once per partition index, with
  one marker per index
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence

from loguru import logger

from pbcorrect.dispatch.base import DispatchBackend, DispatchRequest, DispatchResult
from pbcorrect.errors import PipelineError, StageFailedError
from pbcorrect.pipeline.markers import (
    marker_path,
    missing_markers,
    partition_marker_path,
    write_marker,
)
from pbcorrect.pipeline.wrappers import write_wrapper
from pbcorrect.tools.commands import run_command


class StageState(str, Enum):
    NOT_STARTED = "not_started"
    WRAPPER_GENERATED = "wrapper_generated"
    DISPATCHED = "dispatched"
    COMPLETE = "complete"
    FAILED = "failed"


class PipelineStage(ABC):
    """Base class for marker-guarded stages."""

    def __init__(self, name: str, scratch_dir: Path):
        self.name = name
        self.scratch_dir = Path(scratch_dir)
        self.state = StageState.NOT_STARTED
        self.skipped = False

    def marker_paths(self) -> List[Path]:
        return [marker_path(self.scratch_dir, self.name)]

    def is_complete(self) -> bool:
        return not missing_markers(self.marker_paths())

    def run(self, backend: Optional[DispatchBackend] = None) -> StageState:
        """Run the stage unless it already completed.

        Raises:
            ToolFailedError: A command run by the stage exited nonzero.
            StageFailedError: Work finished but markers are missing, or a
                file operation of the stage failed.
        """
        if self.is_complete():
            logger.info("[{}] previously completed successfully, skipping", self.name)
            self.skipped = True
            self.state = StageState.COMPLETE
            return self.state

        try:
            self.execute(backend)
            self.verify()
        except PipelineError:
            self.state = StageState.FAILED
            raise
        except OSError as e:
            self.state = StageState.FAILED
            raise StageFailedError(self.name, f"Stage {self.name} failed: {e}") from e
        return self.state

    def verify(self) -> None:
        missing = missing_markers(self.marker_paths())
        if missing:
            raise self.failure(missing)
        self.state = StageState.COMPLETE
        logger.info("[{}] complete", self.name)

    def failure(self, missing: Sequence[Path]) -> StageFailedError:
        names = ", ".join(str(m) for m in missing)
        return StageFailedError(self.name, f"Stage {self.name} did not produce {names}", missing=missing)

    @abstractmethod
    def execute(self, backend: Optional[DispatchBackend]) -> None:
        """Do the work of the stage. Called only when markers are missing."""
        ...


class LocalStage(PipelineStage):
    """Work done in the control process; the marker is written after perform()."""

    def execute(self, backend: Optional[DispatchBackend]) -> None:
        self.perform()
        write_marker(self.marker_paths()[0])

    @abstractmethod
    def perform(self) -> None:
        ...


class CommandStage(LocalStage):
    """Run command lines in order; any nonzero exit aborts the run."""

    def __init__(self, name: str, scratch_dir: Path, commands: Sequence[str], cwd: Path):
        super().__init__(name, scratch_dir)
        self.commands = list(commands)
        self.cwd = Path(cwd)

    def perform(self) -> None:
        for command in self.commands:
            run_command(command, self.cwd)


class WrapperStage(PipelineStage):
    """Generate a wrapper script and dispatch it through a backend."""

    # When True, an existing wrapper is treated as a previous attempt and is
    # neither regenerated nor redispatched.
    reuse_existing_wrapper = False

    def __init__(
        self,
        name: str,
        scratch_dir: Path,
        wrapper_path: Path,
        job_name: str,
        *,
        grid_options: str = "",
        concurrency: Optional[int] = None,
    ):
        super().__init__(name, scratch_dir)
        self.wrapper_path = Path(wrapper_path)
        self.job_name = job_name
        self.grid_options = grid_options
        self.concurrency = concurrency
        self.result: Optional[DispatchResult] = None

    @abstractmethod
    def render_wrapper(self) -> str:
        ...

    def request(self) -> DispatchRequest:
        return DispatchRequest(
            script=self.wrapper_path,
            job_name=self.job_name,
            cwd=self.scratch_dir,
            concurrency=self.concurrency,
            grid_options=self.grid_options,
        )

    def execute(self, backend: Optional[DispatchBackend]) -> None:
        if backend is None:
            raise ValueError(f"Stage {self.name} needs a dispatch backend")

        if self.reuse_existing_wrapper and self.wrapper_path.exists():
            logger.warning(
                "[{}] {} exists from a previous attempt, checking its markers",
                self.name,
                self.wrapper_path,
            )
            return

        write_wrapper(self.wrapper_path, self.render_wrapper())
        self.state = StageState.WRAPPER_GENERATED

        self.result = backend.dispatch(self.request())
        self.state = StageState.DISPATCHED

    def failure(self, missing: Sequence[Path]) -> StageFailedError:
        return StageFailedError(
            self.name,
            f"Failed to run {self.job_name}. Remove {self.wrapper_path} to try again.",
            missing=missing,
            retry_artifact=self.wrapper_path,
        )


class PartitionedStage(WrapperStage):
    """Wrapper dispatched once per partition index 1..partitions."""

    reuse_existing_wrapper = True

    def __init__(
        self,
        name: str,
        scratch_dir: Path,
        wrapper_path: Path,
        job_name: str,
        partitions: int,
        *,
        grid_options: str = "",
        concurrency: Optional[int] = None,
    ):
        super().__init__(
            name,
            scratch_dir,
            wrapper_path,
            job_name,
            grid_options=grid_options,
            concurrency=concurrency,
        )
        if partitions < 1:
            raise ValueError("partitions must be >= 1")
        self.partitions = int(partitions)

    def marker_paths(self) -> List[Path]:
        return [partition_marker_path(self.scratch_dir, i) for i in range(1, self.partitions + 1)]

    def missing_partitions(self) -> List[int]:
        return [
            i
            for i in range(1, self.partitions + 1)
            if missing_markers([partition_marker_path(self.scratch_dir, i)])
        ]

    def request(self) -> DispatchRequest:
        return DispatchRequest(
            script=self.wrapper_path,
            job_name=self.job_name,
            cwd=self.scratch_dir,
            array_size=self.partitions,
            concurrency=self.concurrency,
            grid_options=self.grid_options,
        )

    def failure(self, missing: Sequence[Path]) -> StageFailedError:
        indices = self.missing_partitions()
        listed = ", ".join(str(i) for i in indices)
        return StageFailedError(
            self.name,
            f"Failed to run correction job(s) {listed}. Remove {self.wrapper_path} to try again.",
            missing=indices,
            retry_artifact=self.wrapper_path,
        )
