"""Mode bar — top tab strip; the Chat tab shows the selected model."""

from __future__ import annotations

from rich.text import Text
from textual.reactive import reactive
from textual.widget import Widget

from sulmo.tui.mode import Mode


class ModeBar(Widget):
    """Single-line tab strip for Home / model / Settings / Exit."""

    mode: reactive[Mode] = reactive(Mode.HOME)
    model_label: reactive[str] = reactive("?")

    def render(self) -> Text:
        bar = Text()
        for index, mode in enumerate(Mode):
            if index:
                bar.append(" │ ", style="dim")
            label = self.model_label if mode is Mode.CHAT else mode.value
            if mode is self.mode:
                bar.append(f" {label} ", style="bold rgb(0,185,24)")
            else:
                bar.append(f" {label} ")
        return bar
