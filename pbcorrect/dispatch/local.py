"""
Local Dispatch
==============
Runs wrapper invocations on this machine through a ProcessPool.
"""

from __future__ import annotations

import shlex
from typing import Optional

from loguru import logger

from pbcorrect.dispatch.base import DispatchBackend, DispatchRequest, DispatchResult
from pbcorrect.scheduler.pool import ProcessPool


class LocalBackend(DispatchBackend):
    """Submit one pool job per array index (or one job) and drain the pool."""

    name = "local"

    def __init__(self, concurrency: int = 1, pool: Optional[ProcessPool] = None):
        self.default_concurrency = max(1, int(concurrency))
        self.pool = pool if pool is not None else ProcessPool(self.default_concurrency)

    def dispatch(self, request: DispatchRequest) -> DispatchResult:
        script = shlex.quote(str(request.script))

        if request.partitioned:
            commands = [f"{script} {i}" for i in request.indices()]
        else:
            commands = [script]

        self.pool.set_concurrency(request.concurrency or self.default_concurrency)
        for command in commands:
            self.pool.submit(command, cwd=request.cwd)

        logger.info(
            "Running {} locally: {} invocation(s), concurrency {}",
            request.job_name,
            len(commands),
            self.pool.concurrency,
        )
        jobs = self.pool.drain_and_wait()

        return DispatchResult(
            backend=self.name,
            invocations=len(jobs),
            returncodes=tuple(job.returncode for job in jobs),
        )
