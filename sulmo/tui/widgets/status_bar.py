"""Status bar — bottom bar showing the selected session's state."""

from __future__ import annotations

from rich.text import Text
from textual.reactive import reactive
from textual.widget import Widget

from sulmo.engine.session import Session


def _format_elapsed(seconds: float) -> str:
    """Format elapsed seconds into a human-readable string."""
    secs = int(seconds)
    if secs < 60:
        return f"{secs}s"
    elif secs < 3600:
        m, s = divmod(secs, 60)
        return f"{m}m {s}s"
    else:
        h, remainder = divmod(secs, 3600)
        m = remainder // 60
        return f"{h}h {m}m"


class StatusBar(Widget):
    """Single-line status bar with model position, state and last error."""

    model: reactive[str] = reactive("—")
    position: reactive[str] = reactive("")
    status: reactive[str] = reactive("idle")
    elapsed: reactive[float | None] = reactive(None)
    error: reactive[str | None] = reactive(None)
    busy_elsewhere: reactive[int] = reactive(0)

    def show(self, session: Session, index: int, total: int, busy_elsewhere: int = 0) -> None:
        self.model = session.model_ref.name
        self.position = f"{index + 1}/{total}"
        self.elapsed = session.elapsed
        self.error = session.last_error
        self.busy_elsewhere = busy_elsewhere
        if session.is_generating:
            self.status = "generating"
        elif session.last_error:
            self.status = "error"
        else:
            self.status = "idle"

    def render(self) -> Text:
        status_colors = {
            "idle": "green",
            "generating": "yellow",
            "error": "red bold",
        }
        color = status_colors.get(self.status, "white")

        bar = Text()
        bar.append(f" {self.position} ", style="bold")
        bar.append(" │ ", style="dim")
        bar.append(self.model, style="cyan")
        bar.append(" │ ", style="dim")

        status_display = f"● {self.status}"
        if self.elapsed is not None:
            status_display += f" ({_format_elapsed(self.elapsed)})"
        bar.append(status_display, style=color)

        if self.busy_elsewhere:
            bar.append(" │ ", style="dim")
            bar.append(f"{self.busy_elsewhere} other generating", style="dim yellow")
        if self.error:
            bar.append(" │ ", style="dim")
            bar.append(self.error, style="red")
        return bar
