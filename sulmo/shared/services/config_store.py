"""Configuration store — YAML files under the configs directory.

Storage layout:
    {configs_dir}/sulmo.yaml        application settings
    {configs_dir}/model.yaml        default generation settings
    {configs_dir}/{model_stem}.yaml per-model settings + turn history

Missing or unreadable files are replaced with defaults, which are saved
straight away; if that save fails the defaults are still used.
"""
from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, TypeVar

import yaml

from sulmo.engine.config import AppConfig, GenerationConfig
from sulmo.engine.session import Session

logger = logging.getLogger(__name__)

APP_CONFIG_FILENAME = "sulmo.yaml"
DEFAULT_MODEL_CONFIG_FILENAME = "model.yaml"
CONFIG_SUFFIX = ".yaml"

T = TypeVar("T", AppConfig, GenerationConfig)


class LoadStatus(Enum):
    LOADED = "loaded"
    CREATED = "created"  # defaults written to disk
    UNSAVED = "unsaved"  # defaults in use, write failed


@dataclass
class LoadResult:
    config: Any
    status: LoadStatus
    path: Path
    error: str | None = None


def write_text_atomic(path: Path, content: str) -> None:
    """Write via a temp file in the same directory, then rename over ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


class ConfigStore:
    """Reads and writes sulmo's YAML configuration files."""

    def __init__(self, configs_dir: Path | str) -> None:
        self._dir = Path(configs_dir)

    @property
    def directory(self) -> Path:
        return self._dir

    @property
    def app_config_path(self) -> Path:
        return self._dir / APP_CONFIG_FILENAME

    @property
    def default_model_config_path(self) -> Path:
        return self._dir / DEFAULT_MODEL_CONFIG_FILENAME

    def model_config_path(self, model_ref: Path | str) -> Path:
        return self._dir / f"{Path(model_ref).stem}{CONFIG_SUFFIX}"

    def ensure_directory(self) -> str | None:
        """Create the configs directory; returns an error message on failure."""
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("Could not create configs directory %s: %s", self._dir, exc)
            return str(exc)
        return None

    # ── Loading ──────────────────────────────────────────────────────

    def load_app_config(self) -> LoadResult:
        return self._load_or_create(self.app_config_path, AppConfig, AppConfig.from_dict)

    def load_default_generation_config(self) -> LoadResult:
        return self._load_or_create(
            self.default_model_config_path,
            GenerationConfig,
            GenerationConfig.from_dict,
        )

    def load_generation_config(
        self,
        model_ref: Path | str,
        default: GenerationConfig,
    ) -> LoadResult:
        """Load the config linked to ``model_ref``, seeding it from ``default``."""
        return self._load_or_create(
            self.model_config_path(model_ref),
            default.copy,
            GenerationConfig.from_dict,
        )

    def _load_or_create(
        self,
        path: Path,
        factory: Callable[[], T],
        parse: Callable[[dict[str, Any]], T],
    ) -> LoadResult:
        data = self._read_yaml(path)
        if data is not None:
            logger.debug("Loaded config from %s", path)
            return LoadResult(parse(data), LoadStatus.LOADED, path)

        config = factory()
        try:
            self._write_yaml(path, config.to_dict())
        except OSError as exc:
            logger.warning("Created but could not save %s: %s", path, exc)
            return LoadResult(config, LoadStatus.UNSAVED, path, str(exc))
        logger.info("Created default config at %s", path)
        return LoadResult(config, LoadStatus.CREATED, path)

    # ── Saving ───────────────────────────────────────────────────────

    def save_generation_config(self, model_ref: Path | str, config: GenerationConfig) -> None:
        self._write_yaml(self.model_config_path(model_ref), config.to_dict())

    def persist_history(
        self,
        model_ref: Path | str,
        config: GenerationConfig,
        snapshot: list[dict[str, Any]],
    ) -> bool:
        """Record ``snapshot`` on ``config`` and save it if it changed.

        Returns True when the file was written.
        """
        if snapshot == config.history:
            return False
        config.history = [dict(entry) for entry in snapshot]
        try:
            self.save_generation_config(model_ref, config)
        except OSError as exc:
            logger.warning("Could not persist history for %s: %s", model_ref, exc)
            return False
        logger.debug("Persisted %d turn(s) for %s", len(snapshot), model_ref)
        return True

    def history_listener(self) -> Callable[[Session], None]:
        """Callback for ``Session(on_history_changed=...)``."""
        def _persist(session: Session) -> None:
            self.persist_history(session.model_ref, session.config, session.history_snapshot())
        return _persist

    # ── YAML I/O ─────────────────────────────────────────────────────

    @staticmethod
    def _read_yaml(path: Path) -> dict[str, Any] | None:
        if not path.exists():
            return None
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
            logger.warning("Failed to read %s; using defaults: %s", path, exc)
            return None
        if not isinstance(data, dict):
            logger.warning("Ignoring %s: expected a mapping, got %s", path, type(data).__name__)
            return None
        return data

    @staticmethod
    def _write_yaml(path: Path, data: dict[str, Any]) -> None:
        text = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
        write_text_atomic(path, text)
