"""Conversation view — scrollable history plus the live in-flight turn.

User prompts are right-aligned in blue, responses left-aligned in green;
the pending turn is drawn in bold so it stands out while streaming.
"""

from __future__ import annotations

from rich.console import Group
from rich.text import Text
from textual.app import ComposeResult
from textual.containers import VerticalScroll
from textual.widgets import Static

from sulmo.engine.session import Session

PROMPT_STYLE = "rgb(0,161,185)"
RESPONSE_STYLE = "rgb(0,185,24)"


def build_conversation(session: Session) -> Group:
    """Render a session's history and pending turn as rich text."""
    parts: list[Text] = []
    show_formatted = session.config.ps_displayed
    for turn in session.history:
        prompt = turn.formatted_prompt if show_formatted and turn.formatted_prompt else turn.raw_input
        parts.append(Text(prompt, style=PROMPT_STYLE, justify="right"))
        parts.append(Text(""))
        parts.append(Text(turn.response, style=RESPONSE_STYLE, justify="left"))
        parts.append(Text(""))

    pending_prompt = session.pending_prompt if show_formatted else session.pending_input
    if pending_prompt:
        parts.append(Text(pending_prompt, style=f"bold {PROMPT_STYLE}", justify="right"))
        parts.append(Text(""))
    if session.pending_output:
        parts.append(Text(session.pending_output, style=f"bold {RESPONSE_STYLE}", justify="left"))
    if session.pending_failed:
        parts.append(Text("[response truncated: generation failed]", style="red italic"))
    return Group(*parts)


class ConversationView(VerticalScroll):
    """Scroll container holding the rendered conversation."""

    can_focus = False

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._signature: tuple | None = None

    def compose(self) -> ComposeResult:
        yield Static(id="conversation-body")

    def show_session(self, session: Session) -> None:
        """Re-render when the visible content of ``session`` changed."""
        signature = (
            str(session.model_ref),
            tuple(session.history_pairs()),
            session.pending_input,
            session.pending_output,
            session.pending_failed,
            session.config.ps_displayed,
        )
        if signature == self._signature:
            return
        same_session = self._signature is not None and self._signature[0] == signature[0]
        follow = not same_session or self.scroll_y >= self.max_scroll_y
        self._signature = signature
        self.query_one("#conversation-body", Static).update(build_conversation(session))
        if follow:
            self.call_after_refresh(self.scroll_end, animate=False)
