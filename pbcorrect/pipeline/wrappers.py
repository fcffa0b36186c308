"""
Wrapper Scripts
===============
Render the executable shell wrappers that backends dispatch.

Each wrapper re-checks its own marker before doing any work, so a rerun of a
grid task array (or of a single local invocation) never repeats finished
work. The marker is always the last command of an `&&` chain: it exists only
if every output of that invocation was produced.
"""

from __future__ import annotations

import os
import shlex
from pathlib import Path

from pbcorrect.config import CORRECTION, GRID
from pbcorrect.pipeline.markers import shell_write_marker

SHEBANG = "#!/bin/sh"


def write_wrapper(path: Path, text: str) -> Path:
    """Write an executable wrapper script."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    os.chmod(path, 0o755)
    return path


def render_correction_wrapper(
    *,
    scratch_dir: Path,
    correct_tool: str,
    marker: Path,
    gkp_store: Path,
    ovl_store: Path,
    threads: int,
    partitions: int,
    min_length: int,
    repeats: str = "",
    asm: str = CORRECTION.ASM_PREFIX,
) -> str:
    """Wrapper for the correction/layout tool (one invocation)."""
    q = shlex.quote
    scratch = Path(scratch_dir)
    repeat_args = shlex.join(shlex.split(repeats)) if repeats.strip() else ""

    lines = [
        SHEBANG,
        "",
        f"cd {q(str(scratch))} || exit 1",
        "",
        f"if test -e {q(str(marker))}; then",
        "   echo Job previously completed successfully.",
        "else",
        f"   {q(correct_tool)} \\",
        f"      -t {int(threads)} \\",
        f"      -p {int(partitions)} \\",
        f"      -o {q(asm)} \\",
        f"      -l {int(min_length)} \\",
    ]
    if repeat_args:
        lines.append(f"      {repeat_args} \\")
    lines += [
        f"      -O {q(str(ovl_store))} \\",
        f"      -G {q(str(gkp_store))} \\",
        f"      -e {CORRECTION.MAX_ERROR_RATE} -c {CORRECTION.MAX_CONSENSUS_ERROR_RATE} -E {CORRECTION.ERROR_RATE_CUTOFF} \\",
        f"      > {q(str(scratch / f'{asm}.layout.err'))} 2>&1 \\",
        f"   && {shell_write_marker(marker)}",
        "fi",
        "",
    ]
    return "\n".join(lines)


def render_partition_wrapper(
    *,
    scratch_dir: Path,
    bank_transact: str,
    make_consensus: str,
    bank2fasta: str,
    asm: str = CORRECTION.ASM_PREFIX,
    task_id_var: str = GRID.TASK_ID_VAR,
) -> str:
    """Wrapper for one consensus partition.

    The partition index comes from the first argument (local runs) or from the
    grid's task id variable (task-array runs).
    """
    q = shlex.quote
    done = '"$dir/$jobid.success"'
    done_tmp = '"$dir/$jobid.success.tmp"'
    mark = f"touch {done_tmp} && mv {done_tmp} {done}"

    lines = [
        SHEBANG,
        "",
        "jobid=$1",
        "if test x$jobid = x; then",
        f"  jobid=${task_id_var}",
        "fi",
        "if test x$jobid = x -o x$jobid = xundefined; then",
        f"  echo Error: I need {task_id_var} set, or a job index on the command line",
        "  exit 1",
        "fi",
        "",
        f"dir={q(str(Path(scratch_dir)))}",
        'cd "$dir" || exit 1',
        f'lay="$dir/{asm}.$jobid.lay"',
        f'bank="$dir/{asm}.bnk_partition$jobid.bnk"',
        "",
        f"if test -e {done}; then",
        "   echo Job previously completed successfully.",
        'elif test ! -e "$lay"; then',
        '   echo Error: layout file $lay not found',
        "   exit 1",
        "else",
        '   numLays=`grep -c -F "{LAY" "$lay"`',
        '   if test "$numLays" = 0; then',
        f'      : > "$dir/$jobid.fasta" && : > "$dir/$jobid.qual" && {mark}',
        "   else",
        f'      {q(bank_transact)} -b "$bank" -m "$lay" -c > "$dir/bank-transact.$jobid.err" 2>&1 \\',
        f'      && {q(make_consensus)} -B -b "$bank" > "$dir/$jobid.out" 2>&1 \\',
        f'      && {q(bank2fasta)} -e -q "$dir/$jobid.qual" -b "$bank" > "$dir/$jobid.fasta" \\',
        f"      && {mark}",
        "   fi",
        "fi",
        "",
    ]
    return "\n".join(lines)
