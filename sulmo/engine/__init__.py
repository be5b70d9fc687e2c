"""Sulmo session engine — per-model conversations driving an external generator."""
from .config import DEFAULT_EXECUTABLE, AppConfig, GenerationConfig
from .echo import EchoMode, strip_echo
from .errors import (
    ConfigurationError,
    ExecutableNotFoundError,
    GenerationError,
    NoModelsFoundError,
    ReadError,
    SpawnError,
    SulmoError,
)
from .process import GeneratorProcess, ReadResult, ReadStatus, check_executable
from .session import Session, SessionState
from .store import SessionStore
from .turn import Turn

__all__ = [
    # Engine
    "Session",
    "SessionState",
    "SessionStore",
    "GeneratorProcess",
    "ReadResult",
    "ReadStatus",
    "Turn",
    "EchoMode",
    "strip_echo",
    "check_executable",
    # Config
    "AppConfig",
    "GenerationConfig",
    "DEFAULT_EXECUTABLE",
    # Errors
    "ConfigurationError",
    "ExecutableNotFoundError",
    "GenerationError",
    "NoModelsFoundError",
    "ReadError",
    "SpawnError",
    "SulmoError",
]
