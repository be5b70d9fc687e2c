"""Best-effort cleanup of generator processes left behind by a crashed run.

Generators are started in their own session, so if sulmo dies without
running its shutdown path they get re-parented and keep running. At
startup we look for orphaned processes whose command line looks like one
of ours (the configured executable with --model and --prompt) and whose
environment carries the marker every generator is spawned with, and send
them SIGTERM. Without a readable /proc nothing is reaped.
"""

from __future__ import annotations

import os
import shlex
import shutil
import signal
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from sulmo.engine.process import OWNER_ENV_VALUE, OWNER_ENV_VAR

PROC_ROOT = Path("/proc")


@dataclass(frozen=True)
class ProcessInfo:
    pid: int
    ppid: int
    args: str


def _list_processes() -> dict[int, ProcessInfo]:
    """Return process table keyed by PID using `ps` output."""
    out = subprocess.check_output(
        ["ps", "-eo", "pid=,ppid=,args="],
        text=True,
        stderr=subprocess.DEVNULL,
    )
    table: dict[int, ProcessInfo] = {}
    for line in out.splitlines():
        parts = line.strip().split(maxsplit=2)
        if len(parts) < 3:
            continue
        try:
            table[int(parts[0])] = ProcessInfo(int(parts[0]), int(parts[1]), parts[2])
        except ValueError:
            continue
    return table


def is_generator_command(args: str, executable: str) -> bool:
    """True when ``args`` runs ``executable`` with sulmo's --model/--prompt flags."""
    tokens = args.split()
    if not tokens:
        return False
    return (
        Path(tokens[0]).name == Path(executable).name
        and "--model" in tokens
        and "--prompt" in tokens
    )


def has_owner_marker(pid: int) -> bool:
    """True when the environment of ``pid`` shows it was spawned by sulmo."""
    try:
        environ = (PROC_ROOT / str(pid) / "environ").read_bytes()
    except OSError:
        return False
    marker = f"{OWNER_ENV_VAR}={OWNER_ENV_VALUE}".encode()
    return marker in environ.split(b"\0")


def reap_orphaned_generators(
    executable: str,
    *,
    current_pid: int | None = None,
    log: Callable[[str], None] | None = None,
) -> int:
    """SIGTERM orphaned generator processes. Returns how many were signalled.

    A process qualifies only when it matches the generator signature,
    carries the owner marker and its parent is PID 1 or no longer exists.
    """
    logger = log or (lambda _: None)
    if os.name != "posix" or shutil.which("ps") is None:
        return 0
    try:
        name = shlex.split(executable)[0]
    except (ValueError, IndexError):
        return 0

    pid = current_pid or os.getpid()
    try:
        table = _list_processes()
    except (OSError, subprocess.CalledProcessError) as exc:
        logger(f"Could not list processes: {exc}")
        return 0

    killed = 0
    for proc in table.values():
        if proc.pid == pid or not is_generator_command(proc.args, name):
            continue
        if proc.ppid != 1 and proc.ppid in table:
            continue
        if not has_owner_marker(proc.pid):
            continue
        try:
            os.kill(proc.pid, signal.SIGTERM)
        except ProcessLookupError:
            continue
        except PermissionError:
            logger(f"Not permitted to stop orphaned generator pid={proc.pid}")
            continue
        killed += 1
        logger(f"Stopped orphaned generator pid={proc.pid} ppid={proc.ppid}")
    return killed
