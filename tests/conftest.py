"""Shared fixtures: fake assembler/AMOS binaries and ready-made run contexts."""

from __future__ import annotations

import os
from pathlib import Path
from types import SimpleNamespace
from typing import Callable, Dict

import pytest

from pbcorrect.dispatch.grid import GridSettings
from pbcorrect.pipeline.context import PipelineContext
from pbcorrect.scheduler.planner import PartitionPlan
from pbcorrect.tools.discovery import ToolPaths


# Every fake tool appends "<tool> <args>" to $FAKE_LOG.
CA_TOOLS: Dict[str, str] = {
    "fastqToCA": r"""#!/bin/sh
echo "fastqToCA $*" >> "$FAKE_LOG"
echo "{LIB"
echo "acc:PacBio"
echo "}"
""",
    "runCA": r"""#!/bin/sh
echo "runCA $*" >> "$FAKE_LOG"
if test -n "$FAKE_FAIL_STORE"; then
  exit 1
fi
dir=""
prefix=""
while test $# -gt 0; do
  case "$1" in
    -d) dir="$2"; shift ;;
    -p) prefix="$2"; shift ;;
    stopAfter=initialStoreBuilding) mkdir -p "$dir/$prefix.gkpStore" ;;
    stopAfter=overlapper)
      if test -n "$FAKE_FAIL_OVERLAP"; then
        exit 1
      fi
      mkdir -p "$dir/$prefix.ovlStore"
      ;;
  esac
  shift
done
exit 0
""",
    "gatekeeper": r"""#!/bin/sh
echo "gatekeeper $*" >> "$FAKE_LOG"
case "$1" in
  -dumpinfo)
    printf 'num\tname\n3\tLIB\n1000\tFRG\n'
    exit 0
    ;;
  -isfeatureset)
    test "$2" = "${FAKE_TARGET_LIBRARY:-3}"
    exit $?
    ;;
esac
exit 1
""",
    "correctPacBio": r"""#!/bin/sh
echo "correctPacBio $*" >> "$FAKE_LOG"
parts=1
prefix=asm
while test $# -gt 0; do
  case "$1" in
    -p) parts="$2"; shift ;;
    -o) prefix="$2"; shift ;;
  esac
  shift
done
i=1
while test $i -le $parts; do
  if test "$i" = "${FAKE_EMPTY_PARTITION:-0}"; then
    : > "$prefix.$i.lay"
  else
    printf '{LAY\niid:%s\n}\n' "$i" > "$prefix.$i.lay"
  fi
  i=`expr $i + 1`
done
exit 0
""",
    "convert-fasta-to-v2.pl": r"""#!/bin/sh
echo "convert-fasta-to-v2.pl $*" >> "$FAKE_LOG"
echo "{LIB acc:$7}"
cat "$3"
""",
}

AMOS_TOOLS: Dict[str, str] = {
    "bank-transact": r"""#!/bin/sh
echo "bank-transact $*" >> "$FAKE_LOG"
mkdir -p "$2"
""",
    "make-consensus": r"""#!/bin/sh
echo "make-consensus $*" >> "$FAKE_LOG"
case "$3" in
  *"bnk_partition${FAKE_FAIL_PARTITION:-none}.bnk") exit 1 ;;
esac
exit 0
""",
    "bank2fasta": r"""#!/bin/sh
echo "bank2fasta $*" >> "$FAKE_LOG"
idx=`echo "$5" | sed 's/.*bnk_partition\([0-9]*\)\.bnk$/\1/'`
printf '>read%s\nACGT\n' "$idx"
printf '>read%s\n30 30 30 30\n' "$idx" > "$3"
""",
}


GRID_TOOLS: Dict[str, str] = {
    "qsub": r"""#!/bin/sh
echo "qsub $*" >> "$FAKE_LOG"
range=""
while test $# -gt 1; do
  case "$1" in
    -t) range="$2"; shift ;;
  esac
  shift
done
script="$1"
if test -z "$range"; then
  sh "$script"
  exit $?
fi
last=`echo "$range" | sed "s/^1-//"`
i=1
while test $i -le $last; do
  SGE_TASK_ID=$i sh "$script"
  i=`expr $i + 1`
done
exit 0
""",
}


def _install(directory: Path, scripts: Dict[str, str]) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    for name, body in scripts.items():
        path = directory / name
        path.write_text(body, encoding="utf-8")
        os.chmod(path, 0o755)


def read_calls(log: Path) -> list:
    if not log.exists():
        return []
    return [line for line in log.read_text(encoding="utf-8").splitlines() if line.strip()]


@pytest.fixture
def fake_tools(tmp_path: Path, monkeypatch):
    """Install fake tool binaries and point $FAKE_LOG at a fresh call log."""
    root = tmp_path / "install"
    ca_bin = root / "wgs" / "Linux-amd64" / "bin"
    amos_bin = root / "AMOS" / "bin"
    _install(ca_bin, CA_TOOLS)
    _install(amos_bin, AMOS_TOOLS)
    grid_bin = root / "grid" / "bin"
    _install(grid_bin, GRID_TOOLS)

    log = tmp_path / "calls.log"
    monkeypatch.setenv("FAKE_LOG", str(log))
    for var in ("FAKE_FAIL_STORE", "FAKE_FAIL_OVERLAP", "FAKE_FAIL_PARTITION", "FAKE_EMPTY_PARTITION", "FAKE_TARGET_LIBRARY"):
        monkeypatch.delenv(var, raising=False)

    return SimpleNamespace(
        ca_bin=ca_bin,
        amos_bin=amos_bin,
        log=log,
        qsub=grid_bin / "qsub",
        tools=ToolPaths(ca_bin=ca_bin, amos_bin=amos_bin),
        calls=lambda: read_calls(log),
    )


@pytest.fixture
def run_inputs(tmp_path: Path) -> SimpleNamespace:
    inputs = tmp_path / "inputs"
    inputs.mkdir()
    spec = inputs / "pacbio.spec"
    spec.write_text("merSize = 14\n# comment\nutgErrorRate = 0.25\n", encoding="utf-8")
    fastq = inputs / "reads.fastq"
    fastq.write_text("@r1\nACGT\n+\nIIII\n", encoding="utf-8")
    frg = inputs / "illumina.frg"
    frg.write_text("{LIB\nacc:illumina\n}\n", encoding="utf-8")
    return SimpleNamespace(spec=spec, fastq=fastq, frg=frg)


@pytest.fixture
def make_context(tmp_path: Path, fake_tools, run_inputs) -> Callable[..., PipelineContext]:
    """Factory for PipelineContext objects rooted in tmp_path/work."""

    def _make(**overrides) -> PipelineContext:
        work_dir = tmp_path / "work"
        work_dir.mkdir(exist_ok=True)
        partitions = overrides.pop("partitions", 3)
        values = dict(
            work_dir=work_dir,
            library="pacbioLib",
            spec_file=run_inputs.spec,
            fastq_file=run_inputs.fastq,
            frg_files=(run_inputs.frg,),
            tools=fake_tools.tools,
            plan=PartitionPlan(
                partitions=partitions,
                threads=1,
                file_descriptor_ceiling=1024,
                reserved=21,
            ),
            grid=GridSettings(),
            consensus_concurrency=2,
            cleanup=False,
        )
        values.update(overrides)
        return PipelineContext(**values)

    return _make
