"""Tests for reaping orphaned generator processes at startup."""

from __future__ import annotations

import signal

import pytest

import sulmo.shared.services.process_cleanup as cleanup
from sulmo.engine.process import OWNER_ENV_VALUE, OWNER_ENV_VAR
from sulmo.shared.services.process_cleanup import (
    ProcessInfo,
    has_owner_marker,
    is_generator_command,
)

MARKED = f"PATH=/usr/bin\0{OWNER_ENV_VAR}={OWNER_ENV_VALUE}\0HOME=/root\0".encode()
UNMARKED = b"PATH=/usr/bin\0HOME=/root\0"


def _write_environ(proc_root, pid: int, environ: bytes) -> None:
    directory = proc_root / str(pid)
    directory.mkdir(parents=True)
    (directory / "environ").write_bytes(environ)


def test_is_generator_command_matches_executable_name_and_flags():
    assert is_generator_command(
        "/opt/llama-cpp/main --threads 4 --model m.gguf --prompt hi", "llama-cpp/main"
    )
    assert not is_generator_command("/opt/llama-cpp/main --help", "llama-cpp/main")
    assert not is_generator_command("python --model m --prompt p", "llama-cpp/main")
    assert not is_generator_command("", "llama-cpp/main")


def test_has_owner_marker_reads_the_process_environment(tmp_path, monkeypatch):
    monkeypatch.setattr(cleanup, "PROC_ROOT", tmp_path)
    _write_environ(tmp_path, 10, MARKED)
    _write_environ(tmp_path, 11, UNMARKED)
    _write_environ(tmp_path, 12, f"X{OWNER_ENV_VAR}={OWNER_ENV_VALUE}\0".encode())

    assert has_owner_marker(10)
    assert not has_owner_marker(11)
    assert not has_owner_marker(12)
    assert not has_owner_marker(13)  # no such process


@pytest.fixture
def fake_table(tmp_path, monkeypatch):
    table = {
        1: ProcessInfo(1, 0, "/sbin/init"),
        100: ProcessInfo(100, 1, "sulmo"),
        # Child of a live sulmo: left alone.
        200: ProcessInfo(200, 100, "llama-cpp/main --model a.gguf --prompt x"),
        # Re-parented to init: orphan.
        300: ProcessInfo(300, 1, "llama-cpp/main --model b.gguf --prompt y"),
        # Parent vanished from the table: orphan.
        400: ProcessInfo(400, 999, "./llama-cpp/main --model c.gguf --prompt z"),
        # Orphan, but not a generator.
        500: ProcessInfo(500, 1, "llama-cpp/main --version"),
        # The user's own detached run of the same executable.
        600: ProcessInfo(600, 1, "/srv/llama/main --model d.gguf --prompt w"),
    }
    for pid in (200, 300, 400, 500):
        _write_environ(tmp_path, pid, MARKED)
    _write_environ(tmp_path, 600, UNMARKED)

    monkeypatch.setattr(cleanup, "PROC_ROOT", tmp_path)
    monkeypatch.setattr(cleanup.os, "name", "posix")
    monkeypatch.setattr(cleanup.shutil, "which", lambda name: "/bin/ps")
    monkeypatch.setattr(cleanup, "_list_processes", lambda: table)
    killed: list[tuple[int, int]] = []
    monkeypatch.setattr(cleanup.os, "kill", lambda pid, sig: killed.append((pid, sig)))
    return killed


def test_reap_signals_only_orphaned_generators_spawned_by_sulmo(fake_table):
    messages: list[str] = []
    count = cleanup.reap_orphaned_generators("llama-cpp/main", current_pid=100, log=messages.append)

    assert count == 2
    assert fake_table == [(300, signal.SIGTERM), (400, signal.SIGTERM)]
    assert any("pid=300" in m for m in messages)


def test_unrelated_orphan_of_the_same_executable_survives(fake_table):
    cleanup.reap_orphaned_generators("llama-cpp/main", current_pid=100)
    assert 600 not in [pid for pid, _ in fake_table]


def test_nothing_is_reaped_without_readable_process_environments(tmp_path, monkeypatch, fake_table):
    monkeypatch.setattr(cleanup, "PROC_ROOT", tmp_path / "missing")
    assert cleanup.reap_orphaned_generators("llama-cpp/main", current_pid=100) == 0
    assert fake_table == []


def test_reap_skips_processes_that_already_exited(monkeypatch, fake_table):
    def _gone(pid, sig):
        raise ProcessLookupError(pid)

    monkeypatch.setattr(cleanup.os, "kill", _gone)
    assert cleanup.reap_orphaned_generators("llama-cpp/main", current_pid=100) == 0


def test_reap_is_a_no_op_without_ps(monkeypatch):
    monkeypatch.setattr(cleanup.shutil, "which", lambda name: None)
    assert cleanup.reap_orphaned_generators("llama-cpp/main") == 0


def test_reap_is_a_no_op_without_executable(monkeypatch):
    monkeypatch.setattr(cleanup.shutil, "which", lambda name: "/bin/ps")
    assert cleanup.reap_orphaned_generators("") == 0
