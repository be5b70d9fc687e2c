"""Generator process — one external generation run per submitted turn.

The process is started in its own session so the whole process group can
be signalled on termination. Its stdout is switched to non-blocking mode
and drained with ``try_read``; stdin and stderr are not used.
"""
from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Sequence

from .errors import ExecutableNotFoundError, ReadError, SpawnError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 4096
# How long terminate() waits for the killed group leader to be reaped.
TERMINATE_GRACE_SECONDS = 0.1

# Set in every generator's environment so a later run can tell its own
# orphans apart from unrelated processes running the same executable.
OWNER_ENV_VAR = "SULMO_OWNER"
OWNER_ENV_VALUE = "sulmo"


class ReadStatus(Enum):
    PENDING = "pending"  # nothing available yet
    DATA = "data"
    CLOSED = "closed"  # end of stream


@dataclass(frozen=True)
class ReadResult:
    status: ReadStatus
    data: bytes = b""


_PENDING = ReadResult(ReadStatus.PENDING)
_CLOSED = ReadResult(ReadStatus.CLOSED)


def check_executable(launcher: Sequence[str]) -> str:
    """Resolve the generation executable or raise ExecutableNotFoundError.

    Run once at startup, before any session exists.
    """
    if not launcher:
        raise ExecutableNotFoundError("<unset>")
    resolved = shutil.which(launcher[0])
    if resolved is None:
        raise ExecutableNotFoundError(launcher[0])
    return resolved


class GeneratorProcess:
    """Owns one spawned generator: its handle, its stdout and its start time.

    ``terminate()`` is idempotent and must run on every path that drops
    the object; it is also what ``with`` blocks call on exit.
    """

    def __init__(self, proc: subprocess.Popen, *, started_at: float | None = None) -> None:
        if proc.stdout is None:
            raise ValueError("generator process must have a piped stdout")
        self._proc = proc
        self._stdout = proc.stdout
        self._fd = proc.stdout.fileno()
        self.started_at = time.monotonic() if started_at is None else started_at
        self._terminated = False

    @classmethod
    def spawn(
        cls,
        launcher: Sequence[str],
        args: Sequence[str],
        model_ref: Path | str,
        formatted_prompt: str,
    ) -> GeneratorProcess:
        """Start the generator for one prompt.

        Raises SpawnError when the executable cannot be started.
        """
        if not launcher:
            raise SpawnError("<unset>", "no generation executable configured")
        cmd = [
            *launcher,
            *args,
            "--model", str(model_ref),
            "--prompt", formatted_prompt,
        ]
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                env={**os.environ, OWNER_ENV_VAR: OWNER_ENV_VALUE},
                start_new_session=hasattr(os, "killpg"),
            )
        except (OSError, ValueError) as exc:
            raise SpawnError(launcher[0], str(exc)) from exc

        process = cls(proc)
        try:
            os.set_blocking(process._fd, False)
        except OSError as exc:
            process.terminate()
            raise SpawnError(launcher[0], f"cannot make stdout non-blocking: {exc}") from exc

        logger.info(
            "Spawned generator pid=%s model=%s prompt_bytes=%d",
            proc.pid,
            model_ref,
            len(formatted_prompt.encode("utf-8")),
        )
        return process

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def returncode(self) -> int | None:
        return self._proc.poll()

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    @property
    def is_terminated(self) -> bool:
        return self._terminated

    def is_running(self) -> bool:
        return not self._terminated and self._proc.poll() is None

    def try_read(self, size: int = DEFAULT_CHUNK_SIZE) -> ReadResult:
        """Read up to ``size`` bytes without blocking.

        End of stream is the only completion signal; the exit code is not
        consulted. Raises ReadError on any other I/O failure.
        """
        if self._terminated:
            return _CLOSED
        try:
            data = os.read(self._fd, size)
        except BlockingIOError:
            return _PENDING
        except OSError as exc:
            raise ReadError(self.pid, str(exc)) from exc
        if not data:
            return _CLOSED
        return ReadResult(ReadStatus.DATA, data)

    def terminate(self, grace_seconds: float = TERMINATE_GRACE_SECONDS) -> None:
        """Kill the process group and release the output stream.

        Runs inside a poll, so it must not block: the group gets SIGKILL
        straight away and the leader is only waited on for
        ``grace_seconds``.
        """
        if self._terminated:
            return
        self._terminated = True
        proc = self._proc
        try:
            # Signal the group even if the leader already exited, so
            # helpers it left behind do not outlive the session.
            self._kill()
            try:
                proc.wait(timeout=grace_seconds)
            except subprocess.TimeoutExpired:
                logger.warning("Generator pid=%s not reaped after kill", proc.pid)
        finally:
            try:
                self._stdout.close()
            except OSError:
                pass
        logger.debug("Terminated generator pid=%s rc=%s", proc.pid, proc.returncode)

    def _kill(self) -> None:
        proc = self._proc
        if hasattr(os, "killpg"):
            try:
                os.killpg(proc.pid, signal.SIGKILL)
                return
            except ProcessLookupError:
                return
            except PermissionError:
                logger.debug("killpg denied for pid=%s; killing leader", proc.pid)
        if proc.poll() is not None:
            return
        try:
            proc.kill()
        except ProcessLookupError:
            pass

    def __enter__(self) -> GeneratorProcess:
        return self

    def __exit__(self, *exc_info) -> None:
        self.terminate()
