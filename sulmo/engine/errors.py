"""Exception hierarchy for the session engine.

Startup problems derive from ConfigurationError and are reported once by
the entry point. Generation problems derive from GenerationError and stay
local to the session that raised them.
"""
from __future__ import annotations


class SulmoError(Exception):
    """Base exception for all sulmo errors."""


class ConfigurationError(SulmoError):
    """Startup precondition or configuration failure."""


class ExecutableNotFoundError(ConfigurationError):
    """The generation executable is missing or not executable."""
    def __init__(self, executable: str):
        self.executable = executable
        super().__init__(
            f"Generation executable not found: {executable}"
        )


class NoModelsFoundError(ConfigurationError):
    """Model discovery produced nothing to build sessions from."""
    def __init__(self, models_dir: str):
        self.models_dir = models_dir
        super().__init__(f"No .gguf models found in {models_dir}")


class GenerationError(SulmoError):
    """Base exception for failures scoped to a single session."""


class SpawnError(GenerationError):
    """The generation process could not be started."""
    def __init__(self, executable: str, reason: str):
        self.executable = executable
        self.reason = reason
        super().__init__(f"Failed to start {executable}: {reason}")


class ReadError(GenerationError):
    """Draining the generation process output failed."""
    def __init__(self, pid: int | None, reason: str):
        self.pid = pid
        self.reason = reason
        super().__init__(f"Failed to read output of pid {pid}: {reason}")
