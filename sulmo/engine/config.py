"""Configuration objects for the application and for each model.

All settings have defaults. AppConfig values can be overridden with
SULMO_* environment variables; both objects round-trip through plain
dicts so the config store can read and write them as YAML.
"""
from __future__ import annotations

import copy
import logging
import os
import shlex
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_EXECUTABLE = "llama-cpp/main"


def _default_thread_count() -> int:
    # Physical cores, approximated as half the logical CPUs.
    return max(1, (os.cpu_count() or 2) // 2)


def _coerce(name: str, value: Any, default: Any) -> Any:
    """Convert a loaded value to the type of its default, or keep the default."""
    if value is None:
        return default
    try:
        if isinstance(default, bool):
            if isinstance(value, str):
                return value.strip().lower() in {"1", "true", "yes", "on"}
            return bool(value)
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
        if isinstance(default, str):
            return str(value)
        if isinstance(default, list):
            return list(value) if isinstance(value, list) else default
    except (TypeError, ValueError):
        logger.warning("Ignoring invalid value for %s: %r", name, value)
        return default
    return value


def _from_dict(cls, data: dict[str, Any]):
    defaults = cls()
    kwargs = {}
    for f in fields(cls):
        if f.name in data:
            kwargs[f.name] = _coerce(f.name, data[f.name], getattr(defaults, f.name))
    return cls(**kwargs)


@dataclass
class AppConfig:
    """Application-wide settings."""

    # Seconds a generation may run before it is killed. <= 0 disables.
    timeout: float = 420.0
    # Milliseconds between polls of every session.
    tick_rate: int = 200
    # Milliseconds to keep the setup output on screen before the TUI.
    startup_freeze: int = 1000
    # Generation command; shell-split, so wrappers with arguments work.
    executable: str = DEFAULT_EXECUTABLE
    models_dir: str = "./models"
    configs_dir: str = "./configs"
    log_level: str = "INFO"

    @property
    def launcher(self) -> list[str]:
        try:
            return shlex.split(self.executable)
        except ValueError:
            logger.warning("Could not shell-split executable %r", self.executable)
            return [self.executable] if self.executable else []

    @property
    def tick_seconds(self) -> float:
        return max(self.tick_rate, 1) / 1000.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppConfig:
        return _from_dict(cls, data)

    def with_env_overrides(self) -> AppConfig:
        """Return a copy with SULMO_* environment variables applied."""
        env_map = {
            "SULMO_TIMEOUT": "timeout",
            "SULMO_TICK_RATE": "tick_rate",
            "SULMO_STARTUP_FREEZE": "startup_freeze",
            "SULMO_EXECUTABLE": "executable",
            "SULMO_MODELS_DIR": "models_dir",
            "SULMO_CONFIGS_DIR": "configs_dir",
            "SULMO_LOG_LEVEL": "log_level",
        }
        overrides: dict[str, Any] = {}
        for var, name in env_map.items():
            raw = os.environ.get(var)
            if raw is None or raw == "":
                continue
            overrides[name] = _coerce(name, raw, getattr(self, name))
        if overrides:
            logger.info(
                "AppConfig env overrides: %s",
                ", ".join(f"{k}={v}" for k, v in sorted(overrides.items())),
            )
            return replace(self, **overrides)
        return self

    def display_lines(self) -> list[str]:
        return [
            f"generation timeout           :    '{self.timeout}'",
            f"tick rate                    :    '{self.tick_rate}'",
            f"executable                   :    '{self.executable}'",
        ]


@dataclass
class GenerationConfig:
    """Per-model generation parameters plus the persisted turn history."""

    # -n N, --n-predict N
    tokens_to_predict: int = -1
    # -t N, --threads N
    threads_used: int = field(default_factory=_default_thread_count)
    # -ngl N, --n-gpu-layers N
    layers_offloaded_to_gpu: int = 32
    # -c N, --ctx-size N
    prompt_context_size: int = 2048
    # --temp
    randomness: float = 0.75
    # --repeat-penalty N
    repeat_penalty: float = 1.15
    # Added verbatim before and after every prompt; no implicit spaces.
    prompt_prefix: str = "###Instruction: "
    prompt_suffix: str = " ###Response: "
    # Show the formatted prompt instead of the raw input in the chat view.
    ps_displayed: bool = False
    # Anything extra, e.g. "--tfs 0.95".
    other: str = ""
    # How the echoed prompt is removed: "match", "length" or "off".
    echo_strip: str = "match"
    history: list[dict[str, Any]] = field(default_factory=list)

    def to_args(self) -> list[str]:
        args = [
            "--n-predict", str(self.tokens_to_predict),
            "--threads", str(self.threads_used),
            "--n-gpu-layers", str(self.layers_offloaded_to_gpu),
            "--ctx-size", str(self.prompt_context_size),
            "--temp", str(self.randomness),
            "--repeat-penalty", str(self.repeat_penalty),
        ]
        args.extend(self.extra_args())
        return args

    def extra_args(self) -> list[str]:
        if not self.other.strip():
            return []
        try:
            return shlex.split(self.other)
        except ValueError:
            logger.warning("Unbalanced quotes in extra arguments %r", self.other)
            return self.other.split()

    def to_prompt(self, raw_input: str) -> str:
        return f"{self.prompt_prefix}{raw_input}{self.prompt_suffix}"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GenerationConfig:
        config = _from_dict(cls, data)
        config.history = [
            dict(entry) for entry in config.history if isinstance(entry, dict)
        ]
        return config

    def copy(self) -> GenerationConfig:
        return copy.deepcopy(self)

    def display_lines(self) -> list[str]:
        return [
            f"tokens to predict            :    '{self.tokens_to_predict}'",
            f"threads used                 :    '{self.threads_used}'",
            f"layers offloaded to gpu      :    '{self.layers_offloaded_to_gpu}'",
            f"prompt context size          :    '{self.prompt_context_size}'",
            f"randomness                   :    '{self.randomness}'",
            f"repeat penalty               :    '{self.repeat_penalty}'",
            f"prompt prefix                :    '{self.prompt_prefix}'",
            f"prompt suffix                :    '{self.prompt_suffix}'",
            f"prefix/suffix displayed      :    '{self.ps_displayed}'",
            f"echo removal                 :    '{self.echo_strip}'",
            f"other arguments              :    '{self.other}'",
        ]
