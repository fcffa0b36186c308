"""
Command Runner
==============
Run external tool command lines from the control process.

Every command runs through /bin/sh in a given working directory, so callers
can use redirections exactly as the tools document them. A nonzero exit is
fatal: run_command raises ToolFailedError and the whole run stops.
"""

from __future__ import annotations

import subprocess
import time
from datetime import datetime
from pathlib import Path
from typing import Mapping, Optional, Union

from loguru import logger

from pbcorrect.errors import ToolFailedError
from pbcorrect.utils.subprocess_env import build_tool_env


def _execute(
    command: str,
    cwd: Union[str, Path],
    *,
    capture: bool,
    env: Optional[Mapping[str, str]] = None,
) -> subprocess.CompletedProcess:
    return subprocess.run(
        command,
        shell=True,
        cwd=str(cwd),
        env=dict(env) if env is not None else build_tool_env(),
        stdin=subprocess.DEVNULL,
        capture_output=capture,
        text=True,
        encoding="utf-8",
        errors="replace",
    )


def run_command(
    command: str,
    cwd: Union[str, Path],
    *,
    env: Optional[Mapping[str, str]] = None,
) -> None:
    """Run a command and raise ToolFailedError unless it exits 0.

    Output is not captured; tools write to the inherited stdout/stderr or to
    the files their command line redirects to.
    """
    started = time.monotonic()
    logger.info("START {} in {}\n{}", datetime.now().strftime("%c"), cwd, command)

    result = _execute(command, cwd, capture=False, env=env)

    logger.info(
        "END {} ({:.0f} seconds)",
        datetime.now().strftime("%c"),
        time.monotonic() - started,
    )

    if result.returncode != 0:
        raise ToolFailedError(command, int(result.returncode), Path(cwd))


def capture_command(
    command: str,
    cwd: Union[str, Path],
    *,
    env: Optional[Mapping[str, str]] = None,
) -> str:
    """Run a command, return its stdout, and raise ToolFailedError on failure."""
    logger.debug("capture: {}", command)
    result = _execute(command, cwd, capture=True, env=env)
    if result.returncode != 0:
        if result.stderr:
            logger.error(result.stderr.rstrip("\n"))
        raise ToolFailedError(command, int(result.returncode), Path(cwd))
    return result.stdout or ""


def command_succeeds(
    command: str,
    cwd: Union[str, Path],
    *,
    env: Optional[Mapping[str, str]] = None,
) -> bool:
    """Run a predicate-style command and report whether it exited 0."""
    result = _execute(command, cwd, capture=True, env=env)
    logger.debug("predicate exit {}: {}", result.returncode, command)
    return result.returncode == 0
