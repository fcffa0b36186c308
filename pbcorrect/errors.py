"""
Pipeline Errors
===============
Exception taxonomy for the correction pipeline.

Stage-internal failures are never returned as values: they are raised and
terminate the run. Markers on disk make the rerun cheap.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence


class PipelineError(RuntimeError):
    """Base class for all fatal pipeline errors."""


class ConfigurationError(PipelineError, ValueError):
    """Missing or invalid inputs, detected before any stage runs."""


class ToolFailedError(PipelineError):
    """An external tool exited with a nonzero status."""

    def __init__(self, command: str, returncode: int, cwd: Optional[Path] = None):
        self.command = command
        self.returncode = returncode
        self.cwd = cwd
        super().__init__(f"Failed to execute {command} (exit status {returncode})")


class StageFailedError(PipelineError):
    """A stage finished dispatch but some expected markers are missing."""

    def __init__(
        self,
        stage: str,
        message: str,
        *,
        missing: Sequence[object] = (),
        retry_artifact: Optional[Path] = None,
    ):
        self.stage = stage
        self.missing = list(missing)
        self.retry_artifact = retry_artifact
        super().__init__(message)


class ProcessSpawnError(PipelineError):
    """A local process could not be created for a non-transient reason."""


class LibraryClassificationError(PipelineError):
    """The assembly store does not describe exactly one library to correct."""


class RunLockError(PipelineError):
    """Another driver is already working in the same scratch directory."""
