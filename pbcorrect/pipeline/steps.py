"""
Correction Steps
================
The concrete stages of a correction run, in execution order:

1. convert     reads (FASTQ) -> fragment file
2. store       initial assembly store from all fragment files
3. libraries   classify store libraries into target and reference range
4. overlap     overlaps between the target library and the references
5. <asm>.layout  correction/layout tool, one wrapper invocation
6. partitions  per-partition consensus, one invocation per index
7. merge       descending-order concatenation and conversion back to fragments

Command builders are plain functions so they can be checked without running
anything.
"""

from __future__ import annotations

import json
import shlex
import shutil
from pathlib import Path
from typing import List

from loguru import logger

from pbcorrect.config import CORRECTION, GRID
from pbcorrect.errors import StageFailedError
from pbcorrect.pipeline.context import PipelineContext
from pbcorrect.pipeline.markers import marker_path
from pbcorrect.pipeline.merge import concatenate_partitions
from pbcorrect.pipeline.stage import CommandStage, LocalStage, PartitionedStage, PipelineStage, WrapperStage
from pbcorrect.pipeline.wrappers import render_correction_wrapper, render_partition_wrapper
from pbcorrect.tools.commands import run_command
from pbcorrect.tools.libraries import LibraryAssignment, classify_libraries

q = shlex.quote

CORRECTION_WRAPPER = "runCorrection.sh"
PARTITION_WRAPPER = "runPartition.sh"


def _grid_param(ctx: PipelineContext) -> str:
    return ctx.grid.store_builder_param() if ctx.grid.enabled else ""


def _join(*parts: str) -> str:
    return " ".join(p for p in parts if p)


def convert_command(ctx: PipelineContext) -> str:
    return _join(
        q(ctx.tools.ca("fastqToCA")),
        f"-libraryname {q(CORRECTION.READ_LIBRARY_NAME)}",
        "-type sanger -innie -technology pacbio",
        f"-reads {q(str(ctx.fastq_file))}",
        f"> {q(str(ctx.input_frg))}",
    )


def store_command(ctx: PipelineContext) -> str:
    return _join(
        q(ctx.tools.ca("runCA")),
        f"-s {q(str(ctx.spec_file))}",
        f"-p {q(ctx.asm)}",
        f"-d {q(ctx.scratch_dir.name)}",
        _grid_param(ctx),
        "stopAfter=initialStoreBuilding",
        " ".join(q(str(f)) for f in ctx.frg_files),
        q(str(ctx.input_frg)),
    )


def overlap_command(ctx: PipelineContext) -> str:
    if ctx.libraries is None:
        raise ValueError("Overlap command needs the library classification")
    refs = ctx.libraries.reference_range
    return _join(
        q(ctx.tools.ca("runCA")),
        f"-s {q(str(ctx.spec_file))}",
        f"-p {q(ctx.asm)}",
        f"-d {q(ctx.scratch_dir.name)}",
        f"ovlHashLibrary={ctx.libraries.target}",
        f"ovlRefLibrary={refs}",
        f"obtHashLibrary={refs}",
        f"obtRefLibrary={refs}",
        _grid_param(ctx),
        "stopAfter=overlapper",
    )


def load_library_assignment(path: Path) -> LibraryAssignment:
    """Read libraries.json written by a previous classification."""
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise StageFailedError(
            "libraries",
            f"Cannot read library classification {path}: {e}. "
            f"Remove {marker_path(Path(path).parent, 'libraries')} to try again.",
            missing=[path],
        ) from e
    try:
        return LibraryAssignment.from_dict(payload)
    except ValueError as e:
        raise StageFailedError("libraries", f"Invalid library classification {path}: {e}", missing=[path]) from e


class LibraryStage(LocalStage):
    """Classify libraries and persist the result for resumed runs."""

    def __init__(self, ctx: PipelineContext):
        super().__init__("libraries", ctx.scratch_dir)
        self.ctx = ctx

    def perform(self) -> None:
        assignment = classify_libraries(
            self.ctx.tools.ca("gatekeeper"),
            self.ctx.gkp_store,
            self.ctx.scratch_dir,
        )
        self.ctx.libraries_file.write_text(
            json.dumps(assignment.to_dict(), indent=2, sort_keys=True) + "\n",
            encoding="utf-8",
        )


class CorrectionStage(WrapperStage):
    def __init__(self, ctx: PipelineContext):
        super().__init__(
            f"{ctx.asm}.layout",
            ctx.scratch_dir,
            ctx.scratch_dir / CORRECTION_WRAPPER,
            f"correct_{ctx.asm}",
            grid_options=ctx.grid.correction_options,
            concurrency=1,
        )
        self.ctx = ctx

    def render_wrapper(self) -> str:
        return render_correction_wrapper(
            scratch_dir=self.ctx.scratch_dir,
            correct_tool=self.ctx.tools.ca("correctPacBio"),
            marker=self.marker_paths()[0],
            gkp_store=self.ctx.gkp_store,
            ovl_store=self.ctx.ovl_store,
            threads=self.ctx.plan.threads,
            partitions=self.ctx.plan.partitions,
            min_length=self.ctx.min_length,
            repeats=self.ctx.repeats,
            asm=self.ctx.asm,
        )


class ConsensusStage(PartitionedStage):
    def __init__(self, ctx: PipelineContext):
        super().__init__(
            "partitions",
            ctx.scratch_dir,
            ctx.scratch_dir / PARTITION_WRAPPER,
            f"utg_{ctx.asm}",
            ctx.plan.partitions,
            concurrency=ctx.consensus_concurrency,
        )
        self.ctx = ctx

    def render_wrapper(self) -> str:
        tools = self.ctx.tools
        return render_partition_wrapper(
            scratch_dir=self.ctx.scratch_dir,
            bank_transact=tools.amos("bank-transact"),
            make_consensus=tools.amos("make-consensus"),
            bank2fasta=tools.amos("bank2fasta"),
            asm=self.ctx.asm,
            task_id_var=GRID.TASK_ID_VAR,
        )


class MergeStage(LocalStage):
    """Merge partition output and convert it back to the fragment format."""

    def __init__(self, ctx: PipelineContext):
        super().__init__("merge", ctx.scratch_dir)
        self.ctx = ctx

    @property
    def corrected_fasta(self) -> Path:
        return self.ctx.scratch_dir / "corrected.fasta"

    @property
    def corrected_qual(self) -> Path:
        return self.ctx.scratch_dir / "corrected.qual"

    def perform(self) -> None:
        ctx = self.ctx
        partitions = ctx.plan.partitions

        order = concatenate_partitions(ctx.scratch_dir, partitions, ".fasta", self.corrected_fasta)
        concatenate_partitions(ctx.scratch_dir, partitions, ".qual", self.corrected_qual)
        logger.info("Merged partitions in order {}", ", ".join(p.stem for p in order))

        run_command(
            _join(
                q(ctx.tools.ca("convert-fasta-to-v2.pl")),
                "-pacbio",
                f"-s {q(str(self.corrected_fasta))}",
                f"-q {q(str(self.corrected_qual))}",
                f"-l {q(ctx.library)}",
                f"> {q(str(ctx.input_frg))}",
            ),
            ctx.work_dir,
        )
        shutil.copyfile(self.corrected_fasta, ctx.work_dir / f"{ctx.library}.fasta")
        shutil.copyfile(self.corrected_qual, ctx.work_dir / f"{ctx.library}.qual")


def store_stages(ctx: PipelineContext) -> List[PipelineStage]:
    """Stages that run before the library classification is known."""
    return [
        CommandStage("convert", ctx.scratch_dir, [convert_command(ctx)], ctx.work_dir),
        CommandStage("store", ctx.scratch_dir, [store_command(ctx)], ctx.work_dir),
        LibraryStage(ctx),
    ]


def correction_stages(ctx: PipelineContext) -> List[PipelineStage]:
    """Stages that need ctx.libraries."""
    return [
        CommandStage("overlap", ctx.scratch_dir, [overlap_command(ctx)], ctx.work_dir),
        CorrectionStage(ctx),
        ConsensusStage(ctx),
        MergeStage(ctx),
    ]
