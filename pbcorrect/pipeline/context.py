"""Pipeline run context.

PipelineContext is the immutable configuration threaded through every stage.
RunRecord is a small, serializable account of one driver invocation: which
stages ran, which were skipped because their markers existed, and what failed.
Markers on disk remain the source of truth for completion; the record is for
humans and tooling.
"""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from pbcorrect.config import CORRECTION, SCHEDULER
from pbcorrect.dispatch.grid import GridSettings
from pbcorrect.scheduler.planner import PartitionPlan
from pbcorrect.tools.discovery import ToolPaths
from pbcorrect.tools.libraries import LibraryAssignment
from pbcorrect.utils.schema_validation import validate_run_record


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class PipelineContext:
    """Everything a correction run needs, fixed before the first stage."""

    work_dir: Path
    library: str
    spec_file: Path
    fastq_file: Path
    frg_files: Tuple[Path, ...]
    tools: ToolPaths
    plan: PartitionPlan
    grid: GridSettings = field(default_factory=GridSettings)
    min_length: int = CORRECTION.MIN_LENGTH
    repeats: str = ""
    consensus_concurrency: int = SCHEDULER.CONSENSUS_CONCURRENCY
    cleanup: bool = True
    asm: str = CORRECTION.ASM_PREFIX

    # Discovered by the library classification stage
    libraries: Optional[LibraryAssignment] = None

    @property
    def scratch_dir(self) -> Path:
        return self.work_dir / f"temp{self.library}"

    @property
    def gkp_store(self) -> Path:
        return self.scratch_dir / f"{self.asm}.gkpStore"

    @property
    def ovl_store(self) -> Path:
        return self.scratch_dir / f"{self.asm}.ovlStore"

    @property
    def input_frg(self) -> Path:
        """Converted reads; replaced by the corrected reads when the run ends."""
        return self.work_dir / f"{self.library}.frg"

    @property
    def libraries_file(self) -> Path:
        return self.scratch_dir / "libraries.json"

    @property
    def lock_path(self) -> Path:
        return self.work_dir / f"temp{self.library}.lock"

    @property
    def record_path(self) -> Path:
        return self.work_dir / f"{self.library}.correction.json"

    def with_libraries(self, libraries: LibraryAssignment) -> "PipelineContext":
        return dataclasses.replace(self, libraries=libraries)


@dataclass
class RunRecord:
    """Serializable state of one driver invocation."""

    work_dir: Path
    library: str
    run_id: str = field(default_factory=lambda: uuid4().hex)
    created_at: str = field(default_factory=_utc_now_iso)

    success: bool = True
    errors: List[str] = field(default_factory=list)

    checkpoints: Dict[str, str] = field(default_factory=dict)
    stage_results: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    plan: Optional[Dict[str, Any]] = None

    def mark_checkpoint(self, name: str) -> None:
        if not name.strip():
            return
        self.checkpoints[name] = _utc_now_iso()

    def record_stage(self, stage: str, state: str, **details: Any) -> None:
        payload: Dict[str, Any] = {"state": state, "finished_at": _utc_now_iso()}
        payload.update(details)
        self.stage_results[stage] = payload

    def record_failure(self, error: BaseException) -> None:
        self.success = False
        self.errors.append(str(error))

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            "schema_version": "1.0",
            "run_id": self.run_id,
            "created_at": self.created_at,
            "work_dir": str(self.work_dir),
            "library": self.library,
            "success": self.success,
            "errors": list(self.errors),
            "checkpoints": dict(self.checkpoints),
            "stage_results": dict(self.stage_results),
            "plan": dict(self.plan) if self.plan is not None else None,
        }
        validate_run_record(payload)
        return payload

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "RunRecord":
        work_dir = Path(str(payload.get("work_dir", ""))).expanduser().resolve()
        record = cls(work_dir=work_dir, library=str(payload.get("library", "")))

        run_id = payload.get("run_id")
        if isinstance(run_id, str) and run_id:
            record.run_id = run_id

        created_at = payload.get("created_at")
        if isinstance(created_at, str) and created_at:
            record.created_at = created_at

        record.success = bool(payload.get("success", True))

        errors = payload.get("errors")
        if isinstance(errors, list):
            record.errors = [str(e) for e in errors]

        checkpoints = payload.get("checkpoints")
        if isinstance(checkpoints, dict):
            record.checkpoints = {str(k): str(v) for k, v in checkpoints.items()}

        stage_results = payload.get("stage_results")
        if isinstance(stage_results, dict):
            record.stage_results = {
                str(k): dict(v) for k, v in stage_results.items() if isinstance(v, dict)
            }

        plan = payload.get("plan")
        if isinstance(plan, dict):
            record.plan = dict(plan)

        return record

    def write_json(self, path: Path) -> None:
        path.write_text(
            json.dumps(self.to_payload(), indent=2, sort_keys=True) + "\n",
            encoding="utf-8",
        )

    @classmethod
    def read_json(cls, path: Path) -> Optional["RunRecord"]:
        if not path.exists() or not path.is_file():
            return None

        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return None

        if not isinstance(payload, dict):
            return None

        return cls.from_payload(payload)

    @classmethod
    def resume_or_new(cls, path: Path, *, work_dir: Path, library: str) -> "RunRecord":
        """Continue the failed run recorded at `path`, or start a fresh record.

        A resumed record keeps its run id, creation time, checkpoints and
        stage results; its errors are cleared and a "resume" checkpoint is
        added. A previous successful run, or an unreadable or foreign record,
        yields a new record.
        """
        previous = cls.read_json(path)
        if previous is None or previous.success or previous.library != library:
            return cls(work_dir=work_dir, library=library)

        previous.work_dir = work_dir
        previous.success = True
        previous.errors = []
        previous.mark_checkpoint("resume")
        return previous
