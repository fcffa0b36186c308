"""Local scheduling primitives: the process pool and the partition planner."""

from .planner import PartitionPlan, open_file_limit, plan_partitions
from .pool import Job, JobState, ProcessPool

__all__ = [
    "Job",
    "JobState",
    "ProcessPool",
    "PartitionPlan",
    "open_file_limit",
    "plan_partitions",
]
