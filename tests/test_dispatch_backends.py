from __future__ import annotations

import os
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from pbcorrect.dispatch import (
    DispatchRequest,
    GridBackend,
    GridSettings,
    LocalBackend,
    resolve_grid_settings,
    select_backend,
    store_builder_grid_param,
)
from pbcorrect.errors import ToolFailedError
from pbcorrect.scheduler.pool import ProcessPool


def _script(path: Path, body: str) -> Path:
    path.write_text("#!/bin/sh\n" + body, encoding="utf-8")
    os.chmod(path, 0o755)
    return path


@pytest.mark.unit
def test_local_backend_runs_each_index(tmp_path: Path) -> None:
    script = _script(tmp_path / "run.sh", 'sleep 0.1\ntouch "out.$1"\n')
    pool = ProcessPool()
    backend = LocalBackend(concurrency=1, pool=pool)

    result = backend.dispatch(
        DispatchRequest(script=script, job_name="utg_asm", cwd=tmp_path, array_size=3, concurrency=2)
    )

    assert result.backend == "local"
    assert result.invocations == 3
    assert sorted(result.returncodes) == [0, 0, 0]
    assert all((tmp_path / f"out.{i}").exists() for i in (1, 2, 3))
    assert pool.peak_running == 2


@pytest.mark.unit
def test_local_backend_single_invocation_has_no_index(tmp_path: Path) -> None:
    script = _script(tmp_path / "run.sh", 'echo "args:$#" > seen.txt\n')
    backend = LocalBackend()

    result = backend.dispatch(DispatchRequest(script=script, job_name="correct_asm", cwd=tmp_path))

    assert result.invocations == 1
    assert (tmp_path / "seen.txt").read_text().strip() == "args:0"


@pytest.mark.unit
def test_local_backend_reports_but_ignores_failures(tmp_path: Path) -> None:
    script = _script(tmp_path / "run.sh", "exit 4\n")
    result = LocalBackend().dispatch(DispatchRequest(script=script, job_name="x", cwd=tmp_path))
    assert result.returncodes == (4,)


@pytest.mark.unit
def test_local_backend_uses_default_concurrency(tmp_path: Path) -> None:
    script = _script(tmp_path / "run.sh", "sleep 0.1\n")
    pool = ProcessPool()
    backend = LocalBackend(concurrency=3, pool=pool)

    backend.dispatch(DispatchRequest(script=script, job_name="x", cwd=tmp_path, array_size=4))

    assert pool.concurrency == 3


@pytest.mark.unit
def test_request_indices() -> None:
    req = DispatchRequest(script=Path("s.sh"), job_name="x", cwd=Path("."), array_size=3)
    assert req.partitioned is True
    assert req.indices() == [1, 2, 3]
    assert DispatchRequest(script=Path("s.sh"), job_name="x", cwd=Path(".")).indices() == []


@pytest.mark.unit
def test_grid_command_for_task_array(tmp_path: Path) -> None:
    backend = GridBackend(GridSettings(enabled=True, options="-pe threads 4"))
    req = DispatchRequest(
        script=tmp_path / "runPartition.sh",
        job_name="utg_asm",
        cwd=tmp_path,
        array_size=5,
        grid_options="-l mem=8G",
    )

    assert backend.build_command(req) == [
        "qsub",
        "-pe",
        "threads",
        "4",
        "-l",
        "mem=8G",
        "-sync",
        "y",
        "-cwd",
        "-N",
        "utg_asm",
        "-t",
        "1-5",
        "-j",
        "y",
        "-o",
        "/dev/null",
        str(tmp_path / "runPartition.sh"),
    ]


@pytest.mark.unit
def test_grid_command_without_array(tmp_path: Path) -> None:
    backend = GridBackend(GridSettings(enabled=True))
    argv = backend.build_command(DispatchRequest(script=tmp_path / "c.sh", job_name="correct_asm", cwd=tmp_path))
    assert "-t" not in argv
    assert argv[-1] == str(tmp_path / "c.sh")


@pytest.mark.unit
def test_grid_dispatch_blocks_on_submission(tmp_path: Path) -> None:
    backend = GridBackend(GridSettings(enabled=True))
    req = DispatchRequest(script=tmp_path / "c.sh", job_name="correct_asm", cwd=tmp_path, array_size=2)

    with patch("pbcorrect.dispatch.grid.subprocess.run", return_value=SimpleNamespace(returncode=1)) as run:
        result = backend.dispatch(req)

    argv = run.call_args.args[0]
    assert argv[:3] == ["qsub", "-sync", "y"]
    assert run.call_args.kwargs["cwd"] == str(tmp_path)
    assert result.backend == "grid"
    assert result.invocations == 2
    assert result.returncodes == (1,)


@pytest.mark.unit
def test_grid_dispatch_missing_submit_command(tmp_path: Path) -> None:
    backend = GridBackend(GridSettings(enabled=True, submit_command=str(tmp_path / "no-qsub")))
    with patch("pbcorrect.dispatch.grid.subprocess.run", side_effect=FileNotFoundError("no-qsub")):
        with pytest.raises(ToolFailedError) as exc:
            backend.dispatch(DispatchRequest(script=tmp_path / "c.sh", job_name="x", cwd=tmp_path))
    assert exc.value.returncode == 127


@pytest.mark.unit
def test_store_builder_grid_param() -> None:
    assert store_builder_grid_param("-pe threads 2") == 'sge="-pe threads 2 -sync y" sgePropagateHold=corAsm'
    assert store_builder_grid_param("") == 'sge=" -sync y" sgePropagateHold=corAsm'


@pytest.mark.unit
def test_resolve_grid_settings_prefers_command_line() -> None:
    settings = resolve_grid_settings(
        {"sge": "-q spec.q", "sgeScript": "-pe threads 8"},
        sge="-q cli.q",
        sge_correction="-pe threads 16",
    )
    assert settings.enabled is True
    assert settings.options == "-q cli.q"
    assert settings.correction_options == "-pe threads 16"


@pytest.mark.unit
def test_resolve_grid_settings_from_spec_file() -> None:
    settings = resolve_grid_settings({"sge": "-q spec.q", "sgeScript": "-pe threads 8"})
    assert settings.enabled is True
    assert settings.options == "-q spec.q"
    assert settings.correction_options == "-pe threads 8"


@pytest.mark.unit
def test_use_grid_overrides_presence_of_options() -> None:
    assert resolve_grid_settings({"sge": "-q a", "useGrid": "0"}).enabled is False
    assert resolve_grid_settings({"useGrid": "1"}).enabled is True
    assert resolve_grid_settings({}).enabled is False


@pytest.mark.unit
def test_select_backend() -> None:
    assert isinstance(select_backend(GridSettings(enabled=True)), GridBackend)
    assert isinstance(select_backend(GridSettings(enabled=False)), LocalBackend)
    assert isinstance(select_backend(None, concurrency=4), LocalBackend)


@pytest.mark.integration
def test_grid_backend_with_fake_scheduler(tmp_path: Path, fake_tools) -> None:
    script = _script(tmp_path / "run.sh", 'touch "task.$SGE_TASK_ID"\n')
    backend = GridBackend(GridSettings(enabled=True, submit_command=str(fake_tools.qsub)))

    result = backend.dispatch(DispatchRequest(script=script, job_name="utg_asm", cwd=tmp_path, array_size=3))

    assert result.returncodes == (0,)
    assert all((tmp_path / f"task.{i}").exists() for i in (1, 2, 3))
