"""
Process Pool
============
Bounded-concurrency pool that runs queued shell commands as independent OS
processes and drains the queue to completion.

The pool never interprets exit codes. Callers verify success through the
marker files the commands write (see pbcorrect.pipeline.markers).

Usage:
    pool = ProcessPool(concurrency=4)
    for i in range(1, 11):
        pool.submit(f"./runPartition.sh {i}")
    pool.drain_and_wait()
"""

from __future__ import annotations

import errno
import os
import subprocess
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Deque, List, Optional, Union

from loguru import logger
from tenacity import Retrying, retry_if_exception, wait_fixed

from pbcorrect.config import SCHEDULER
from pbcorrect.errors import ProcessSpawnError
from pbcorrect.utils.subprocess_env import build_tool_env

# Not available on every platform; the pool falls back to timed polling
_waitid = getattr(os, "waitid", None)


class JobState(Enum):
    """Lifecycle of a pool job."""
    QUEUED = "queued"
    RUNNING = "running"
    REAPED = "reaped"


@dataclass
class Job:
    """A submitted shell command and the process running it."""
    command: str
    cwd: Optional[Path] = None
    process: Optional[subprocess.Popen] = None
    state: JobState = JobState.QUEUED
    returncode: Optional[int] = None

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process is not None else None

    def handle(self) -> subprocess.Popen:
        """Return the running process; only valid once the job has started."""
        if self.process is None:
            raise RuntimeError(f"Job has not been started: {self.command}")
        return self.process


def _is_process_exhaustion(exc: BaseException) -> bool:
    """Return True for fork failures caused by a temporarily full process table."""
    return isinstance(exc, OSError) and exc.errno == errno.EAGAIN


class ProcessPool:
    """Runs up to `concurrency` queued commands at a time.

    JobQueue and RunningSet are private and only change inside
    drain_and_wait(). Submission order is start order; completion order is
    unspecified.
    """

    def __init__(
        self,
        concurrency: int = 1,
        *,
        fork_retry_delay: float = SCHEDULER.FORK_RETRY_DELAY,
        poll_interval: float = SCHEDULER.POLL_INTERVAL,
    ):
        self._queue: Deque[Job] = deque()
        self._running: List[Job] = []
        self._concurrency = 1
        self.fork_retry_delay = fork_retry_delay
        self.poll_interval = poll_interval
        # High-water mark of the running set, kept for diagnostics
        self.peak_running = 0
        self.set_concurrency(concurrency)

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def running(self) -> int:
        return len(self._running)

    def set_concurrency(self, n: int) -> None:
        """Set the maximum number of concurrently running jobs (minimum 1)."""
        self._concurrency = max(1, int(n))

    def submit(self, command: str, *, cwd: Optional[Union[str, Path]] = None) -> Job:
        """Queue a shell command. Nothing runs until drain_and_wait()."""
        job = Job(command=command.strip(), cwd=Path(cwd) if cwd is not None else None)
        self._queue.append(job)
        return job

    def drain_and_wait(self) -> List[Job]:
        """Run every queued command and block until all of them have exited.

        Returns:
            The reaped jobs, in reaping order.
        """
        finished: List[Job] = []
        total = len(self._queue)
        started = time.monotonic()
        logger.info("START CONCURRENT jobs={} concurrency={}", total, self._concurrency)

        while self._queue:
            finished.extend(self._reap_finished())
            self._start_queued()

            if self._queue:
                finished.extend(self._wait_any())

        while self._running:
            job = self._running.pop(0)
            finished.append(self._mark_reaped(job, job.handle().wait()))

        logger.info(
            "END CONCURRENT jobs={} ({:.1f} seconds)",
            total,
            time.monotonic() - started,
        )
        return finished

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _spawn(self, job: Job) -> subprocess.Popen:
        retrying = Retrying(
            retry=retry_if_exception(_is_process_exhaustion),
            wait=wait_fixed(self.fork_retry_delay),
            before_sleep=lambda retry_state: logger.warning(
                "No more processes; fork retry {} for: {}",
                retry_state.attempt_number,
                job.command,
            ),
            reraise=True,
        )
        try:
            return retrying(
                subprocess.Popen,
                job.command,
                shell=True,
                cwd=str(job.cwd) if job.cwd is not None else None,
                env=build_tool_env(),
            )
        except OSError as e:
            raise ProcessSpawnError(f"Can't fork '{job.command}': {e}") from e

    def _start_queued(self) -> None:
        while len(self._running) < self._concurrency and self._queue:
            job = self._queue.popleft()
            logger.debug("spawn: {}", job.command)
            job.process = self._spawn(job)
            job.state = JobState.RUNNING
            self._running.append(job)
            self.peak_running = max(self.peak_running, len(self._running))

    def _reap_finished(self) -> List[Job]:
        """Non-blocking pass over the running set."""
        reaped: List[Job] = []
        still_running: List[Job] = []
        for job in self._running:
            rc = job.handle().poll()
            if rc is None:
                still_running.append(job)
            else:
                reaped.append(self._mark_reaped(job, rc))
        self._running = still_running
        return reaped

    def _wait_any(self) -> List[Job]:
        """Block until one of the pool's jobs exits and remove it from the running set.

        Only the pool's own processes are collected. Children started by
        anyone else keep their exit status for their owner.
        """
        while True:
            reaped = self._reap_finished()
            if reaped or not self._running:
                return reaped
            self._block_for_exit()

    def _block_for_exit(self) -> None:
        """Sleep until some child has exited, without collecting it."""
        if _waitid is None:
            time.sleep(self.poll_interval)
            return

        try:
            info = _waitid(os.P_ALL, 0, os.WEXITED | os.WNOWAIT)
        except ChildProcessError:
            return

        owned = {job.pid for job in self._running}
        if info is None or info.si_pid not in owned:
            # Exited child belongs to someone else and stays uncollected
            time.sleep(self.poll_interval)

    def _mark_reaped(self, job: Job, returncode: Optional[int]) -> Job:
        job.state = JobState.REAPED
        job.returncode = returncode
        if returncode:
            logger.warning("exit status {}: {}", returncode, job.command)
        return job
