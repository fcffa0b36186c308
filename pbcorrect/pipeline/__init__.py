"""Marker-guarded correction stages and the pipeline runner."""

from .context import PipelineContext, RunRecord
from .markers import marker_exists, marker_path, missing_markers, partition_marker_path, write_marker
from .merge import concatenate_partitions, partition_merge_order
from .runner import run_correction_pipeline
from .stage import (
    CommandStage,
    LocalStage,
    PartitionedStage,
    PipelineStage,
    StageState,
    WrapperStage,
)

__all__ = [
    "PipelineContext",
    "RunRecord",
    "marker_exists",
    "marker_path",
    "missing_markers",
    "partition_marker_path",
    "write_marker",
    "concatenate_partitions",
    "partition_merge_order",
    "run_correction_pipeline",
    "CommandStage",
    "LocalStage",
    "PartitionedStage",
    "PipelineStage",
    "StageState",
    "WrapperStage",
]
