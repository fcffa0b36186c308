"""Loguru sink configuration for command-line runs."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from pbcorrect.config import LOGGING

_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <7} | {message}"


def configure_logging(level: str = LOGGING.LEVEL, log_file: Optional[Union[str, Path]] = None) -> None:
    """Replace loguru's default sink with a stderr sink and an optional file sink."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=_FORMAT)

    if log_file is not None:
        logger.add(
            str(log_file),
            level="DEBUG",
            format=_FORMAT,
            enqueue=True,
            backtrace=True,
            diagnose=False,
        )
