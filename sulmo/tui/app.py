"""Sulmo TUI — Textual application class."""

from __future__ import annotations

import logging
from pathlib import Path

from textual.app import App

from sulmo.engine.config import AppConfig
from sulmo.engine.store import SessionStore
from sulmo.tui.screens.main import MainScreen

logger = logging.getLogger(__name__)


class SulmoApp(App):
    """Terminal UI for prompting local gguf models."""

    TITLE = "Sulmo"
    CSS_PATH = Path("styles/app.tcss")

    BINDINGS = [
        ("escape", "quit", "Quit"),
    ]

    def __init__(self, store: SessionStore, app_config: AppConfig | None = None) -> None:
        super().__init__()
        self.store = store
        self.app_config = app_config or AppConfig()

    def on_mount(self) -> None:
        self.push_screen(MainScreen(self.store, self.app_config))
        self.set_interval(self.app_config.tick_seconds, self._on_tick)

    def _on_tick(self) -> None:
        """Poll every session, then redraw the selected one."""
        self.store.tick()
        screen = self.screen
        if isinstance(screen, MainScreen):
            screen.refresh_view()

    async def action_quit(self) -> None:
        logger.info("Quit requested")
        self.store.shutdown()
        self.exit()
