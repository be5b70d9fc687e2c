"""Model discovery — find local .gguf models and link their configs.

Every ``*.gguf`` file directly inside the models directory becomes one
session. Each model is paired with ``{configs_dir}/{stem}.yaml``; when
that file is missing it is created from the default generation config.

Progress is reported through an optional ``report`` callable taking one
line of rich markup, so the entry point can print it during setup.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from sulmo.engine.config import GenerationConfig
from sulmo.engine.errors import ConfigurationError
from sulmo.shared.services.config_store import ConfigStore, LoadStatus

logger = logging.getLogger(__name__)

MODEL_SUFFIX = ".gguf"


@dataclass
class DiscoveredModel:
    path: Path
    config: GenerationConfig
    config_status: LoadStatus

    def as_pair(self) -> tuple[Path, GenerationConfig]:
        return self.path, self.config


def find_model_files(models_dir: Path) -> list[Path]:
    """Return model files sorted by name, creating the directory if needed."""
    if not models_dir.is_dir():
        try:
            models_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ConfigurationError(
                f"Failed to find and create the models directory {models_dir}: {exc}"
            ) from exc
        logger.info("Created empty models directory %s", models_dir)
        return []
    try:
        entries = list(models_dir.iterdir())
    except OSError as exc:
        raise ConfigurationError(
            f"Failed to read the models directory {models_dir}: {exc}"
        ) from exc
    return sorted(
        (p for p in entries if p.is_file() and p.suffix.lower() == MODEL_SUFFIX),
        key=lambda p: p.name.lower(),
    )


def discover_models(
    models_dir: Path | str,
    store: ConfigStore,
    default_config: GenerationConfig,
    *,
    report: Callable[[str], None] | None = None,
) -> list[DiscoveredModel]:
    """Pair each model file with its generation config."""
    emit = report or (lambda _: None)
    discovered: list[DiscoveredModel] = []

    for path in find_model_files(Path(models_dir)):
        emit(f'         Found "{path.name}".')
        result = store.load_generation_config(path, default_config)
        if result.status is LoadStatus.LOADED:
            emit("         -> linked with the associated config file")
        elif result.status is LoadStatus.CREATED:
            emit("         -> created and saved a new associated default config file")
        else:
            emit(
                "         -> created but did not save a new associated default "
                f"config file, {result.error}"
            )
        discovered.append(DiscoveredModel(path, result.config, result.status))

    logger.info("Discovered %d model(s) in %s", len(discovered), models_dir)
    return discovered
