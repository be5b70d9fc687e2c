"""Main screen — mode bar, the four panes and the status bar.

All editing keys are forwarded to the selected session; the screen never
changes session state itself beyond calling its commands.
"""

from __future__ import annotations

import logging

from textual import events
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.screen import Screen
from textual.widgets import ContentSwitcher

from sulmo.engine.config import AppConfig
from sulmo.engine.session import Session
from sulmo.engine.store import SessionStore
from sulmo.shared.utils import APP_VERSION, display_name
from sulmo.tui.mode import Mode
from sulmo.tui.widgets.conversation import ConversationView
from sulmo.tui.widgets.mode_bar import ModeBar
from sulmo.tui.widgets.panes import ExitPane, HomePane, InputBar, SettingsPane
from sulmo.tui.widgets.status_bar import StatusBar

logger = logging.getLogger(__name__)


class MainScreen(Screen):
    """Tabbed home / chat / settings / exit layout over a SessionStore."""

    BINDINGS = [
        Binding("tab", "next_mode", "Menu", priority=True),
        Binding("pageup", "next_model", "Next model", priority=True),
        Binding("pagedown", "prev_model", "Previous model", priority=True),
        Binding("enter", "submit", "Send", priority=True),
        Binding("end", "cancel_generation", "Stop", priority=True),
        Binding("delete", "delete_exchange", "Delete exchange", priority=True),
        Binding("backspace", "backspace", "Backspace", priority=True),
        Binding("ctrl+c", "copy_response", "Copy", priority=True),
        Binding("ctrl+v", "paste_clipboard", "Paste", priority=True),
        Binding("up", "scroll_conversation(-1)", "Scroll up", priority=True),
        Binding("down", "scroll_conversation(1)", "Scroll down", priority=True),
    ]

    def __init__(self, store: SessionStore, app_config: AppConfig, **kwargs) -> None:
        super().__init__(**kwargs)
        self.store = store
        self.app_config = app_config
        self.mode = Mode.HOME

    @property
    def session(self) -> Session:
        return self.store.current()

    def compose(self) -> ComposeResult:
        yield ModeBar(id="mode-bar")
        with ContentSwitcher(initial=Mode.HOME.pane_id, id="panes"):
            yield HomePane(id=Mode.HOME.pane_id)
            with Vertical(id=Mode.CHAT.pane_id):
                yield ConversationView(id="conversation")
                yield InputBar(id="input-bar")
            yield SettingsPane(id=Mode.SETTINGS.pane_id)
            yield ExitPane(id=Mode.EXIT.pane_id)
        yield StatusBar(id="status-bar")

    def on_mount(self) -> None:
        self.query_one("#mode-bar", ModeBar).border_title = f" Sulmo {APP_VERSION} "
        self.refresh_view()

    def refresh_view(self) -> None:
        """Pull the selected session's state into the widgets."""
        session = self.session
        mode_bar = self.query_one("#mode-bar", ModeBar)
        mode_bar.mode = self.mode
        mode_bar.model_label = display_name(session.model_ref, 35, "?")

        self.query_one("#panes", ContentSwitcher).current = self.mode.pane_id
        if self.mode is Mode.CHAT:
            self.query_one("#conversation", ConversationView).show_session(session)
            self.query_one("#input-bar", InputBar).show_draft(session.draft_text)
        elif self.mode is Mode.SETTINGS:
            self.query_one(SettingsPane).show_configs(self.app_config, session.config)

        busy_elsewhere = sum(
            1 for other in self.store if other is not session and other.is_generating
        )
        self.query_one("#status-bar", StatusBar).show(
            session, self.store.index, len(self.store), busy_elsewhere,
        )

    # ── Keys ─────────────────────────────────────────────────────────

    def on_key(self, event: events.Key) -> None:
        if self.mode is not Mode.CHAT:
            return
        if event.is_printable and event.character:
            self.session.insert_char(event.character)
            event.stop()
            event.prevent_default()
            self.refresh_view()

    def on_paste(self, event: events.Paste) -> None:
        if event.text:
            self.session.insert_text(event.text)
            self.refresh_view()

    # ── Actions ──────────────────────────────────────────────────────

    def action_next_mode(self) -> None:
        self.mode = self.mode.next()
        self.refresh_view()

    def action_next_model(self) -> None:
        if self.mode is Mode.CHAT:
            self.store.next()
            self.refresh_view()

    def action_prev_model(self) -> None:
        if self.mode is Mode.CHAT:
            self.store.prev()
            self.refresh_view()

    async def action_submit(self) -> None:
        if self.mode is Mode.EXIT:
            await self.app.action_quit()
        elif self.mode is Mode.CHAT:
            if not self.session.submit() and self.session.last_error:
                self.notify(self.session.last_error, severity="error")
            self.refresh_view()

    def action_cancel_generation(self) -> None:
        if self.mode is Mode.CHAT:
            self.session.cancel()
            self.refresh_view()

    def action_delete_exchange(self) -> None:
        if self.mode is Mode.CHAT:
            self.session.delete_last_exchange()
            self.refresh_view()

    def action_backspace(self) -> None:
        if self.mode is Mode.CHAT:
            self.session.delete_last_grapheme()
            self.refresh_view()

    def action_copy_response(self) -> None:
        output = self.session.pending_output
        if output:
            self.app.copy_to_clipboard(output)
            logger.debug("Copied %d characters of output", len(output))
            self.notify("Copied response to clipboard")

    def action_paste_clipboard(self) -> None:
        """Insert the text last copied inside sulmo into the draft."""
        text = self.app.clipboard
        if self.mode is Mode.CHAT and text:
            self.session.insert_text(text)
            self.refresh_view()

    def action_scroll_conversation(self, direction: int) -> None:
        view = self.query_one("#conversation", ConversationView)
        if direction < 0:
            view.scroll_up(animate=False)
        else:
            view.scroll_down(animate=False)
