"""Session — one conversation against one model.

A session is either IDLE or GENERATING. ``submit`` spawns a generator for
the current draft, ``poll`` drains it without blocking, and every path
that leaves GENERATING (end of stream, timeout, cancel, read failure)
terminates the process before forgetting it.
"""
from __future__ import annotations

import codecs
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Sequence

import regex

from .config import DEFAULT_EXECUTABLE, GenerationConfig
from .echo import parse_echo_mode, strip_echo
from .errors import ReadError, SpawnError
from .process import DEFAULT_CHUNK_SIZE, GeneratorProcess, ReadStatus
from .turn import Turn

logger = logging.getLogger(__name__)

# Upper bound on chunks drained by a single poll so one chatty
# generator cannot stall a tick.
MAX_READS_PER_POLL = 16

_GRAPHEME = regex.compile(r"\X")

HistoryListener = Callable[["Session"], None]


class SessionState(Enum):
    IDLE = "idle"
    GENERATING = "generating"


class Session:
    """Draft, in-flight turn, history and generator for one model."""

    def __init__(
        self,
        model_ref: Path | str,
        config: GenerationConfig,
        *,
        launcher: Sequence[str] = (DEFAULT_EXECUTABLE,),
        on_history_changed: HistoryListener | None = None,
        read_chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._model_ref = Path(model_ref)
        self.config = config
        self._launcher = tuple(launcher)
        self._on_history_changed = on_history_changed
        self._read_chunk_size = read_chunk_size

        self._draft = Turn()
        self._pending: Turn | None = None
        self._history: list[Turn] = [Turn.from_dict(entry) for entry in config.history]
        self._process: GeneratorProcess | None = None
        self._echo_stripped = False
        self._echo_mode = parse_echo_mode(config.echo_strip)
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.last_error: str | None = None

    # ── State ────────────────────────────────────────────────────────

    @property
    def model_ref(self) -> Path:
        return self._model_ref

    @property
    def state(self) -> SessionState:
        if self._process is None:
            return SessionState.IDLE
        return SessionState.GENERATING

    @property
    def is_generating(self) -> bool:
        return self._process is not None

    @property
    def process(self) -> GeneratorProcess | None:
        return self._process

    @property
    def pending(self) -> Turn | None:
        return self._pending

    @property
    def elapsed(self) -> float | None:
        """Seconds the active generation has been running, if any."""
        if self._process is None:
            return None
        return self._process.elapsed

    # ── Commands ─────────────────────────────────────────────────────

    def submit(self) -> bool:
        """Send the draft to a new generator process.

        No-op while generating. Returns True when a process was started.
        A spawn failure leaves the session untouched apart from
        ``last_error``.
        """
        if self._process is not None:
            return False

        raw_input = self._draft.raw_input
        formatted_prompt = self.config.to_prompt(raw_input)
        try:
            process = GeneratorProcess.spawn(
                self._launcher,
                self.config.to_args(),
                self._model_ref,
                formatted_prompt,
            )
        except SpawnError as exc:
            self.last_error = str(exc)
            logger.error("Submission failed for %s: %s", self._model_ref.name, exc)
            return False

        archived = False
        if self._pending is not None and self._pending.has_response():
            self._history.append(self._pending)
            archived = True
        self._pending = Turn(raw_input=raw_input, formatted_prompt=formatted_prompt)
        self._draft = Turn()
        self._process = process
        self._echo_stripped = False
        self._echo_mode = parse_echo_mode(self.config.echo_strip)
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.last_error = None

        if archived:
            self._notify_history_changed()
        return True

    def poll(self, timeout_seconds: float) -> None:
        """Drain whatever output is available; never blocks.

        ``timeout_seconds`` <= 0 disables the timeout.
        """
        process = self._process
        if process is None:
            return

        if timeout_seconds > 0 and process.elapsed > timeout_seconds:
            logger.info(
                "Generation for %s timed out after %.1fs (pid=%s)",
                self._model_ref.name,
                process.elapsed,
                process.pid,
            )
            self._drop_process()
            return

        for _ in range(MAX_READS_PER_POLL):
            try:
                result = process.try_read(self._read_chunk_size)
            except ReadError as exc:
                self.abort(str(exc))
                return
            if result.status is ReadStatus.PENDING:
                return
            if result.status is ReadStatus.CLOSED:
                self._append(self._decoder.decode(b"", final=True))
                logger.info(
                    "Generation for %s finished in %.1fs (pid=%s)",
                    self._model_ref.name,
                    process.elapsed,
                    process.pid,
                )
                self._drop_process()
                return
            self._append(self._decoder.decode(result.data))

    def cancel(self) -> None:
        """Stop generating; the partial response stays in ``pending``."""
        if self._process is None:
            return
        logger.info(
            "Generation for %s cancelled (pid=%s)",
            self._model_ref.name,
            self._process.pid,
        )
        self._drop_process()

    def abort(self, reason: str) -> None:
        """Stop generating after a failure and mark the turn as truncated."""
        logger.error("Generation for %s failed: %s", self._model_ref.name, reason)
        self.last_error = reason
        if self._pending is not None:
            self._pending.failed = True
        self._drop_process()

    def delete_last_exchange(self) -> None:
        """Drop the answered pending turn, or else the newest history entry."""
        self.cancel()
        if self._pending is not None and self._pending.has_response():
            self._pending = None
            return
        if self._history:
            self._history.pop()
            self._notify_history_changed()

    # ── Draft editing ────────────────────────────────────────────────

    def insert_char(self, char: str) -> None:
        self._draft.raw_input += char

    def insert_text(self, text: str) -> None:
        self._draft.raw_input += text

    def delete_last_grapheme(self) -> None:
        """Remove one user-perceived character from the end of the draft."""
        draft = self._draft.raw_input
        if not draft:
            return
        clusters = _GRAPHEME.findall(draft)
        self._draft.raw_input = "".join(clusters[:-1])

    # ── Read accessors ───────────────────────────────────────────────

    @property
    def draft_text(self) -> str:
        return self._draft.raw_input

    @property
    def pending_input(self) -> str:
        return self._pending.raw_input if self._pending is not None else ""

    @property
    def pending_prompt(self) -> str:
        return self._pending.formatted_prompt if self._pending is not None else ""

    @property
    def pending_output(self) -> str:
        return self._pending.response if self._pending is not None else ""

    @property
    def pending_failed(self) -> bool:
        return self._pending is not None and self._pending.failed

    @property
    def history(self) -> tuple[Turn, ...]:
        return tuple(self._history)

    def history_pairs(self) -> list[tuple[str, str]]:
        return [turn.as_pair() for turn in self._history]

    def history_snapshot(self) -> list[dict[str, Any]]:
        return [turn.to_dict() for turn in self._history]

    # ── Internals ────────────────────────────────────────────────────

    def _append(self, text: str) -> None:
        if not text or self._pending is None:
            return
        pending = self._pending
        pending.response += text
        if not self._echo_stripped:
            pending.response, self._echo_stripped = strip_echo(
                pending.response,
                pending.formatted_prompt,
                self._echo_mode,
            )

    def _drop_process(self) -> None:
        process = self._process
        if process is None:
            return
        try:
            process.terminate()
        finally:
            self._process = None

    def _notify_history_changed(self) -> None:
        if self._on_history_changed is None:
            return
        try:
            self._on_history_changed(self)
        except Exception:
            # Persistence is best-effort; a failing listener must not
            # break the conversation.
            logger.exception("History listener failed for %s", self._model_ref.name)
