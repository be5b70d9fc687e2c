"""Session store — one session per model plus the current selection."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from .config import DEFAULT_EXECUTABLE, GenerationConfig
from .session import HistoryListener, Session

logger = logging.getLogger(__name__)


class SessionStore:
    """Ordered, fixed-size collection of sessions with a cyclic cursor.

    ``tick()`` polls every session, selected or not, so background
    generations keep streaming while another model is on screen.
    """

    def __init__(
        self,
        models_with_config: Iterable[tuple[Path | str, GenerationConfig]],
        *,
        launcher: Sequence[str] = (DEFAULT_EXECUTABLE,),
        timeout_seconds: float = 420.0,
        on_history_changed: HistoryListener | None = None,
    ) -> None:
        sessions = [
            Session(
                model_ref,
                config,
                launcher=launcher,
                on_history_changed=on_history_changed,
            )
            for model_ref, config in models_with_config
        ]
        self._init(sessions, timeout_seconds)

    @classmethod
    def from_sessions(
        cls,
        sessions: Sequence[Session],
        *,
        timeout_seconds: float = 420.0,
    ) -> SessionStore:
        store = cls.__new__(cls)
        store._init(list(sessions), timeout_seconds)
        return store

    def _init(self, sessions: list[Session], timeout_seconds: float) -> None:
        if not sessions:
            raise ValueError("SessionStore needs at least one session")
        self._sessions = sessions
        self._index = 0
        self.timeout_seconds = timeout_seconds

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[Session]:
        return iter(self._sessions)

    @property
    def index(self) -> int:
        return self._index

    @property
    def sessions(self) -> tuple[Session, ...]:
        return tuple(self._sessions)

    def current(self) -> Session:
        return self._sessions[self._index]

    def next(self) -> Session:
        self._index = (self._index + 1) % len(self._sessions)
        return self.current()

    def prev(self) -> Session:
        self._index = (self._index - 1) % len(self._sessions)
        return self.current()

    def tick(self) -> None:
        for session in self._sessions:
            try:
                session.poll(self.timeout_seconds)
            except Exception as exc:
                # Failures stay inside the session that produced them.
                logger.exception("Polling %s failed", session.model_ref.name)
                session.abort(f"{type(exc).__name__}: {exc}")

    def any_generating(self) -> bool:
        return any(session.is_generating for session in self._sessions)

    def shutdown(self) -> None:
        """Terminate every live generator; safe to call more than once."""
        for session in self._sessions:
            session.cancel()
