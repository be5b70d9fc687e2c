"""Tests for GeneratorProcess spawn / try_read / terminate using real children."""

from __future__ import annotations

import json
import os
import signal
import sys
import time
from pathlib import Path

import pytest

from sulmo.engine.errors import ExecutableNotFoundError, SpawnError
from sulmo.engine.process import (
    OWNER_ENV_VALUE,
    OWNER_ENV_VAR,
    GeneratorProcess,
    ReadStatus,
    check_executable,
)

posix_only = pytest.mark.skipif(os.name != "posix", reason="non-blocking pipes need POSIX")


def _script(tmp_path: Path, body: str) -> list[str]:
    path = tmp_path / "fake_generator.py"
    path.write_text(body, encoding="utf-8")
    return [sys.executable, str(path)]


def _drain(process: GeneratorProcess, deadline: float = 10.0) -> bytes:
    out = b""
    end = time.monotonic() + deadline
    while time.monotonic() < end:
        result = process.try_read(64)
        if result.status is ReadStatus.CLOSED:
            return out
        if result.status is ReadStatus.DATA:
            out += result.data
        else:
            time.sleep(0.01)
    raise AssertionError("generator did not close its output in time")


def _read_until(process: GeneratorProcess, marker: bytes, deadline: float = 10.0) -> bytes:
    out = b""
    end = time.monotonic() + deadline
    while marker not in out:
        assert time.monotonic() < end, "marker never arrived"
        result = process.try_read(64)
        if result.status is ReadStatus.DATA:
            out += result.data
        elif result.status is ReadStatus.CLOSED:
            break
        else:
            time.sleep(0.01)
    return out


@posix_only
def test_spawn_appends_model_and_prompt_after_config_args(tmp_path):
    launcher = _script(tmp_path, "import json, sys\nprint(json.dumps(sys.argv[1:]))\n")
    with GeneratorProcess.spawn(launcher, ["--temp", "0.5"], "models/a.gguf", "Hi there") as process:
        output = _drain(process)

    assert json.loads(output) == [
        "--temp", "0.5",
        "--model", "models/a.gguf",
        "--prompt", "Hi there",
    ]


@posix_only
def test_try_read_reports_pending_before_output(tmp_path):
    launcher = _script(
        tmp_path,
        "import sys, time\ntime.sleep(0.5)\nsys.stdout.write('late')\n",
    )
    process = GeneratorProcess.spawn(launcher, [], "m.gguf", "p")
    try:
        assert process.try_read().status is ReadStatus.PENDING
        assert _drain(process) == b"late"
    finally:
        process.terminate()


@posix_only
def test_end_of_stream_is_the_completion_signal_regardless_of_exit_code(tmp_path):
    launcher = _script(tmp_path, "import sys\nsys.stdout.write('partial')\nsys.exit(3)\n")
    with GeneratorProcess.spawn(launcher, [], "m.gguf", "p") as process:
        assert _drain(process) == b"partial"


def test_spawn_missing_executable_raises_spawn_error(tmp_path):
    missing = str(tmp_path / "no-such-generator")
    with pytest.raises(SpawnError) as excinfo:
        GeneratorProcess.spawn([missing], [], "m.gguf", "p")
    assert excinfo.value.executable == missing


def test_spawn_without_launcher_raises_spawn_error():
    with pytest.raises(SpawnError):
        GeneratorProcess.spawn([], [], "m.gguf", "p")


@posix_only
def test_terminate_stops_a_running_generator_and_is_idempotent(tmp_path):
    launcher = _script(
        tmp_path,
        "import sys, time\nprint('ready', flush=True)\ntime.sleep(60)\n",
    )
    process = GeneratorProcess.spawn(launcher, [], "m.gguf", "p")
    _read_until(process, b"ready")
    assert process.is_running()

    process.terminate(grace_seconds=5.0)
    process.terminate()

    assert process.is_terminated
    assert not process.is_running()
    assert process.returncode is not None
    assert process.try_read().status is ReadStatus.CLOSED


@posix_only
def test_terminate_does_not_wait_on_a_generator_that_ignores_sigterm(tmp_path):
    launcher = _script(
        tmp_path,
        "import signal, time\n"
        "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
        "print('ready', flush=True)\n"
        "time.sleep(60)\n",
    )
    process = GeneratorProcess.spawn(launcher, [], "m.gguf", "p")
    _read_until(process, b"ready")

    started = time.monotonic()
    process.terminate()

    assert time.monotonic() - started < 0.5
    process._proc.wait(timeout=5)
    assert process.returncode == -signal.SIGKILL


@posix_only
def test_spawned_generator_carries_the_owner_marker(tmp_path):
    launcher = _script(
        tmp_path,
        f"import os, sys\nsys.stdout.write(os.environ.get({OWNER_ENV_VAR!r}, ''))\n",
    )
    with GeneratorProcess.spawn(launcher, [], "m.gguf", "p") as process:
        assert _drain(process).decode() == OWNER_ENV_VALUE


@posix_only
def test_elapsed_counts_from_spawn(tmp_path):
    launcher = _script(tmp_path, "pass\n")
    with GeneratorProcess.spawn(launcher, [], "m.gguf", "p") as process:
        assert 0.0 <= process.elapsed < 5.0
        process.started_at -= 100
        assert process.elapsed >= 100


def test_check_executable_resolves_python():
    assert check_executable([sys.executable, "-c", "pass"])


def test_check_executable_raises_when_missing(tmp_path):
    with pytest.raises(ExecutableNotFoundError):
        check_executable([str(tmp_path / "missing" / "main")])
    with pytest.raises(ExecutableNotFoundError):
        check_executable([])
