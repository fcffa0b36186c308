#!/usr/bin/env python3
"""Correct PacBio reads against reference fragment libraries.

Runs (or resumes) the correction pipeline in the current working directory,
or in --work-dir when given.

It writes:
- <library>.frg, <library>.fasta, <library>.qual: corrected reads
- <library>.correction.json: run record (stages run or skipped, errors)

Exit code behavior:
- 0 on success.
- 1 for usage and configuration errors (nothing has run).
- 2 when a pipeline stage fails; rerun the same command to resume.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Correct PacBio sequences using higher-accuracy fragment libraries",
    )
    parser.add_argument("frg_files", nargs="*", help="Reference fragment files (.frg, .frg.gz, .frg.bz2)")
    parser.add_argument("-s", "--spec", required=True, help="Assembler spec file")
    parser.add_argument("--fastq", required=True, help="PacBio reads to correct (FASTQ)")
    parser.add_argument("-l", "--library", required=True, help="Name of the corrected library")
    parser.add_argument("-d", "--work-dir", default=".", help="Working directory (default: current directory)")
    parser.add_argument("--length", type=int, default=None, help="Minimum corrected read length (default: 500)")
    parser.add_argument("--repeats", default="", help="Extra repeat options passed to the correction tool")
    parser.add_argument("-t", "--threads", type=int, default=None, help="Correction threads (default: 1)")
    parser.add_argument("--partitions", type=int, default=None, help="Consensus partitions (default: 1)")
    parser.add_argument("--sge", default=None, help="Grid submission options; enables grid mode")
    parser.add_argument("--sge-correction", default=None, help="Grid options for the correction job only")
    parser.add_argument("--noclean", action="store_true", help="Keep the temporary working tree")
    parser.add_argument("--ca-bin", default=None, help="Directory holding the assembler binaries")
    parser.add_argument("--amos-bin", default=None, help="Directory holding the AMOS binaries")
    parser.add_argument("--log-level", default=None, help="Log level (default: INFO)")
    parser.add_argument("--log-file", default=None, help="Also write a debug log to this file")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return 0 if e.code in (0, None) else 1

    # Allow running this script directly without requiring installation.
    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))

    from loguru import logger

    from pbcorrect.config import CORRECTION, LOGGING, PARTITIONS, SCHEDULER
    from pbcorrect.dispatch import resolve_grid_settings, select_backend
    from pbcorrect.errors import ConfigurationError, PipelineError
    from pbcorrect.pipeline import PipelineContext, RunRecord, run_correction_pipeline
    from pbcorrect.scheduler import plan_partitions
    from pbcorrect.tools import locate_tools, read_spec_options, spec_int
    from pbcorrect.utils import configure_logging, validate_frg_files, validate_library_name, validate_path

    configure_logging(args.log_level or LOGGING.LEVEL, log_file=args.log_file)

    try:
        library = validate_library_name(args.library)
        spec_file = validate_path(args.spec, must_exist=True, must_be_file=True)
        fastq_file = validate_path(args.fastq, must_exist=True, must_be_file=True)
        frg_files = validate_frg_files(args.frg_files)
        work_dir = validate_path(args.work_dir, must_be_dir=True)

        min_length = CORRECTION.MIN_LENGTH if args.length is None else int(args.length)
        if min_length < 1:
            raise ConfigurationError(f"--length must be positive, got {min_length}")

        threads = PARTITIONS.DEFAULT_THREADS if args.threads is None else max(1, int(args.threads))
        partitions = PARTITIONS.DEFAULT_PARTITIONS if args.partitions is None else int(args.partitions)

        spec_options = read_spec_options(spec_file)
        grid = resolve_grid_settings(spec_options, sge=args.sge, sge_correction=args.sge_correction)
        consensus_concurrency = spec_int(spec_options, "cnsConcurrency", SCHEDULER.CONSENSUS_CONCURRENCY)

        tools = locate_tools(args.ca_bin, args.amos_bin)
        plan = plan_partitions(partitions, threads)
    except ConfigurationError as e:
        parser.print_usage(sys.stderr)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Running with {plan.threads} threads and {plan.partitions} partitions", flush=True)

    ctx = PipelineContext(
        work_dir=work_dir,
        library=library,
        spec_file=spec_file,
        fastq_file=fastq_file,
        frg_files=tuple(frg_files),
        tools=tools,
        plan=plan,
        grid=grid,
        min_length=min_length,
        repeats=args.repeats or "",
        consensus_concurrency=max(1, int(consensus_concurrency)),
        cleanup=not args.noclean,
    )
    record = RunRecord.resume_or_new(ctx.record_path, work_dir=work_dir, library=library)
    if "resume" in record.checkpoints:
        logger.info("Resuming run {} from {}", record.run_id, ctx.record_path)

    exit_code = 0
    try:
        run_correction_pipeline(ctx, backend=select_backend(grid), record=record)
    except PipelineError as e:
        logger.error(str(e))
        exit_code = 2

    work_dir.mkdir(parents=True, exist_ok=True)
    record.write_json(ctx.record_path)
    print(f"Success: {record.success}")
    print(f"Record: {ctx.record_path}")
    for err in record.errors:
        print(f"  - {err}")
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
