"""Small display helpers shared by the TUI and the startup output."""

from __future__ import annotations

from pathlib import Path

APP_VERSION = "1.1.2"


def display_name(model_ref: Path | str, max_length: int = 35, fallback: str = "?") -> str:
    """Model file stem, truncated with '..' to fit ``max_length``."""
    stem = Path(model_ref).stem or fallback
    if len(stem) > max_length:
        return f"{stem[:max(max_length - 2, 0)]}.."
    return stem
