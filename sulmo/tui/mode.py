"""Top-level TUI modes, cycled with Tab."""

from __future__ import annotations

from enum import Enum


class Mode(Enum):
    HOME = "Home"
    CHAT = "Chat"
    SETTINGS = "Settings"
    EXIT = "Exit"

    @property
    def pane_id(self) -> str:
        return f"{self.name.lower()}-pane"

    def next(self) -> Mode:
        members = list(Mode)
        return members[(members.index(self) + 1) % len(members)]
