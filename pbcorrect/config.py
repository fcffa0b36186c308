"""
Centralized Configuration
=========================
Centralized configuration values and constants for the PacBio correction pipeline.

This module provides:
- File descriptor reserve used by the partition planner
- Local scheduler and grid submission defaults
- Correction tool thresholds
- Tool environment sanitizing
- Environment variable overrides (PBC_*)
"""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class PartitionConfig:
    """Partition planning defaults."""

    # Descriptors kept free for everything that is not a partition file
    BASE_RESERVE: int = int(os.getenv("PBC_FD_BASE_RESERVE", "20"))

    DEFAULT_PARTITIONS: int = 1
    DEFAULT_THREADS: int = 1


@dataclass(frozen=True)
class SchedulerConfig:
    """Local process pool configuration."""

    # Seconds to wait before retrying a fork that failed with EAGAIN
    FORK_RETRY_DELAY: float = float(os.getenv("PBC_FORK_RETRY_DELAY", "1.0"))

    # Seconds between polls while another owner's exited child is uncollected
    POLL_INTERVAL: float = float(os.getenv("PBC_POLL_INTERVAL", "0.05"))

    # Concurrent consensus jobs when running without a grid
    CONSENSUS_CONCURRENCY: int = int(os.getenv("PBC_CONSENSUS_CONCURRENCY", "8"))


@dataclass(frozen=True)
class CorrectionConfig:
    """Correction and layout tool parameters."""

    MIN_LENGTH: int = 500
    MAX_ERROR_RATE: float = 0.25  # -e
    MAX_CONSENSUS_ERROR_RATE: float = 0.25  # -c
    ERROR_RATE_CUTOFF: float = 6.5  # -E

    ASM_PREFIX: str = "asm"
    READ_LIBRARY_NAME: str = "PacBio"
    FEATURE_FLAG: str = "doConsensusCorrection"


@dataclass(frozen=True)
class GridConfig:
    """Batch scheduler configuration."""

    SUBMIT_COMMAND: str = os.getenv("PBC_GRID_SUBMIT", "qsub")
    TASK_ID_VAR: str = os.getenv("PBC_GRID_TASK_ID_VAR", "SGE_TASK_ID")
    PROPAGATE_HOLD: str = "corAsm"


@dataclass(frozen=True)
class ToolEnvConfig:
    """Environment handed to assembler, consensus and grid tools."""

    # Pass only allowlisted variables instead of the whole parent environment
    SANITIZE: bool = os.getenv("PBC_SANITIZE_ENV", "0").strip().lower() in {"1", "true", "yes"}

    # Extra variable names to keep when sanitizing (comma separated)
    ALLOWLIST: tuple = tuple(
        name.strip() for name in os.getenv("PBC_ENV_ALLOWLIST", "").split(",") if name.strip()
    )


@dataclass(frozen=True)
class TimeoutConfig:
    """Centralized timeout configuration in seconds."""

    # Working directory run lock
    FILE_LOCK: int = 30


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""

    LEVEL: str = os.getenv("PBC_LOG_LEVEL", "INFO")


# Global singleton instances
PARTITIONS = PartitionConfig()
SCHEDULER = SchedulerConfig()
CORRECTION = CorrectionConfig()
GRID = GridConfig()
TOOL_ENV = ToolEnvConfig()
TIMEOUTS = TimeoutConfig()
LOGGING = LoggingConfig()
