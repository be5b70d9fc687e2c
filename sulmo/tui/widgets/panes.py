"""Static panes: key help, settings listing, exit prompt and the draft line."""

from __future__ import annotations

from rich.text import Text
from textual.widgets import Static

from sulmo.engine.config import AppConfig, GenerationConfig

HOME_TEXT = (
    "Welcome to Sulmo, a terminal user interface designed to prompt "
    "llama.cpp compatible gguf models in your terminal.\n\n"
    "Press '[b]Tab[/b]' to change menu.\n\n"
    "Press '[b]PgUp[/b]' or '[b]PgDown[/b]' to change the model.\n\n"
    "Press '[b]End[/b]' to stop the text generation and '[b]Del[/b]' "
    "to delete the latest exchange.\n\n"
    "Press '[b]ctrl + c[/b]' to copy to your clipboard the latest message "
    "generated or currently being generated.\n\n"
    "Press '[b]ctrl + v[/b]' to paste the last copied message into the prompt, "
    "or use your terminal's paste shortcut for anything else.\n\n"
    "Use the up and down arrow keys to scroll up and down in chat mode."
)

EXIT_TEXT = (
    "Press '[b]Enter[/b]' in this window or '[b]Esc[/b]' anywhere "
    "to exit the application"
)


class HomePane(Static):
    def __init__(self, **kwargs) -> None:
        super().__init__(HOME_TEXT, markup=True, **kwargs)


class ExitPane(Static):
    def __init__(self, **kwargs) -> None:
        super().__init__(EXIT_TEXT, markup=True, **kwargs)


class SettingsPane(Static):
    """Lists the application settings and the selected model's settings."""

    def show_configs(self, app_config: AppConfig, generation: GenerationConfig) -> None:
        text = Text()
        text.append("    App configuration\n", style="bold rgb(0,185,24)")
        for line in app_config.display_lines():
            text.append(f"{line}\n")
        text.append("\n")
        text.append("    Llama configuration\n", style="bold rgb(0,185,24)")
        for line in generation.display_lines():
            text.append(f"{line}\n")
        self.update(text)


class InputBar(Static):
    """Shows the draft being typed for the selected session."""

    PLACEHOLDER = "Type a prompt and press Enter"

    def show_draft(self, draft: str) -> None:
        if draft:
            self.update(Text(draft))
        else:
            self.update(Text(self.PLACEHOLDER, style="dim italic"))
