"""Correction pipeline runner.

Runs the correction stages in strict order under a working-directory lock.
Every stage is skipped when its markers exist, so rerunning the driver after a
failure or an interruption resumes at the first incomplete stage. The first
failing stage raises and nothing after it runs.
"""

from __future__ import annotations

import shutil
from typing import Iterable, Optional

from filelock import FileLock, Timeout
from loguru import logger

from pbcorrect.config import TIMEOUTS
from pbcorrect.dispatch.base import DispatchBackend
from pbcorrect.dispatch.factory import select_backend
from pbcorrect.errors import PipelineError, RunLockError
from pbcorrect.pipeline.context import PipelineContext, RunRecord
from pbcorrect.pipeline.stage import PipelineStage
from pbcorrect.pipeline.steps import correction_stages, load_library_assignment, store_stages


def _run_stages(
    stages: Iterable[PipelineStage],
    backend: DispatchBackend,
    record: RunRecord,
) -> None:
    for stage in stages:
        try:
            stage.run(backend)
        except PipelineError:
            record.record_stage(stage.name, "failed")
            raise
        record.record_stage(stage.name, "skipped" if stage.skipped else "complete")


def _run_locked(ctx: PipelineContext, backend: DispatchBackend, record: RunRecord) -> PipelineContext:
    ctx.scratch_dir.mkdir(parents=True, exist_ok=True)

    _run_stages(store_stages(ctx), backend, record)
    ctx = ctx.with_libraries(load_library_assignment(ctx.libraries_file))
    record.mark_checkpoint("libraries")

    _run_stages(correction_stages(ctx), backend, record)
    return ctx


def run_correction_pipeline(
    ctx: PipelineContext,
    *,
    backend: Optional[DispatchBackend] = None,
    record: Optional[RunRecord] = None,
) -> RunRecord:
    """Run (or resume) a correction.

    Args:
        ctx: Run configuration.
        backend: Dispatch backend; selected from ctx.grid when omitted.
        record: Run record to update; created when omitted.

    Returns:
        The run record with success=True.

    Raises:
        PipelineError: On the first failing stage. The record passed in is
            updated with the failure before the error propagates.
    """
    if record is None:
        record = RunRecord(work_dir=ctx.work_dir, library=ctx.library)
    record.plan = ctx.plan.to_dict()
    if backend is None:
        backend = select_backend(ctx.grid)

    record.mark_checkpoint("start")
    lock = FileLock(str(ctx.lock_path), timeout=TIMEOUTS.FILE_LOCK)

    try:
        try:
            ctx.work_dir.mkdir(parents=True, exist_ok=True)
            with lock:
                ctx = _run_locked(ctx, backend, record)
        except Timeout as e:
            raise RunLockError(
                f"Another correction run holds {ctx.lock_path}; wait for it to finish or remove the lock"
            ) from e
        except OSError as e:
            raise PipelineError(f"File error in {ctx.work_dir}: {e}") from e

        if ctx.cleanup:
            logger.info("Removing {}", ctx.scratch_dir)
            try:
                shutil.rmtree(ctx.scratch_dir)
            except OSError as e:
                raise PipelineError(f"Cannot remove {ctx.scratch_dir}: {e}") from e
            record.mark_checkpoint("cleanup")
    except PipelineError as e:
        logger.error("Correction of {} failed: {}", ctx.library, e)
        record.record_failure(e)
        record.mark_checkpoint("end")
        raise

    record.mark_checkpoint("end")
    logger.info("Corrected reads written to {}", ctx.input_frg)
    return record
