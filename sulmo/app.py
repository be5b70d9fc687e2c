"""Sulmo — main application entry point."""

from __future__ import annotations

import logging
import os
import sys
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console

from sulmo.engine.config import AppConfig
from sulmo.engine.errors import ConfigurationError, NoModelsFoundError
from sulmo.shared.services.config_store import ConfigStore, LoadResult, LoadStatus

OK = "[green][  OK  ][/green]"
WARN = "[yellow][ !!!! ][/yellow]"
FAILED = "[red][FAILED][/red]"


def _configure_logging(log_dir: Path, log_level: str) -> Path | None:
    """Send all records to a rotating file; the TUI owns the terminal."""
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        return None
    log_file = log_dir / "sulmo.log"

    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root.handlers.clear()
    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s [pid=%(process)d] %(message)s"
    )
    file_handler = RotatingFileHandler(
        log_file, maxBytes=2_000_000, backupCount=5, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)
    return log_file


def _report_load(console: Console, what: str, result: LoadResult) -> None:
    if result.status is LoadStatus.LOADED:
        console.print(f"{OK} Loaded the {what} from {result.path}.")
    elif result.status is LoadStatus.CREATED:
        console.print(f"{OK} Created and saved a default {what} at {result.path}.")
    else:
        console.print(
            f"{WARN} Using a default {what}, could not save it to "
            f"{result.path}: {result.error}"
        )


def _load_app_config(console: Console, args) -> tuple[AppConfig, ConfigStore]:
    configs_dir = (
        args.configs_dir
        or os.environ.get("SULMO_CONFIGS_DIR")
        or AppConfig.configs_dir
    )
    store = ConfigStore(configs_dir)
    error = store.ensure_directory()
    if error:
        console.print(f"{WARN} Could not create the configs directory {configs_dir}: {error}")

    result = store.load_app_config()
    _report_load(console, "app config", result)
    app_config: AppConfig = result.config.with_env_overrides()
    # The directory the files were read from is authoritative.
    app_config.configs_dir = str(store.directory)
    if args.models_dir:
        app_config.models_dir = args.models_dir
    if args.executable:
        app_config.executable = args.executable
    if args.no_freeze:
        app_config.startup_freeze = 0
    return app_config, store


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(
        prog="sulmo",
        description="Sulmo — prompt llama.cpp compatible gguf models in your terminal",
    )
    parser.add_argument(
        "--configs-dir", metavar="PATH",
        help="Directory holding sulmo.yaml, model.yaml and per-model configs",
    )
    parser.add_argument(
        "--models-dir", metavar="PATH",
        help="Directory scanned for .gguf model files",
    )
    parser.add_argument(
        "--executable", metavar="CMD",
        help="Generation command, e.g. 'llama-cpp/main'",
    )
    parser.add_argument(
        "--list", action="store_true",
        help="List discovered models and exit (no TUI)",
    )
    parser.add_argument(
        "--no-freeze", action="store_true",
        help="Skip the pause after the setup output",
    )
    args = parser.parse_args()

    console = Console(highlight=False)
    try:
        app_config, config_store = _load_app_config(console, args)
    except ConfigurationError as exc:
        console.print(f"{FAILED} {exc}")
        sys.exit(1)

    log_file = _configure_logging(config_store.directory / "logs", app_config.log_level)
    logger = logging.getLogger(__name__)
    logger.info(
        "Starting Sulmo cwd=%s configs=%s models=%s executable=%r log=%s",
        Path.cwd(),
        app_config.configs_dir,
        app_config.models_dir,
        app_config.executable,
        log_file,
    )

    from sulmo.engine.process import check_executable
    from sulmo.shared.services.model_discovery import discover_models
    from sulmo.shared.services.process_cleanup import reap_orphaned_generators

    try:
        resolved = check_executable(app_config.launcher)
        console.print(f"{OK} Found the generation executable {resolved}.")

        try:
            reaped = reap_orphaned_generators(
                app_config.executable,
                log=logger.info,
            )
            if reaped:
                console.print(f"{WARN} Stopped {reaped} orphaned generation process(es).")
                logger.warning("Reaped %d orphaned generator(s) at startup", reaped)
        except Exception:
            logger.exception("Startup orphan cleanup failed")

        default_result = config_store.load_default_generation_config()
        _report_load(console, "default model config", default_result)

        console.print(f"{OK} Searching for models in {app_config.models_dir}.")
        models = discover_models(
            app_config.models_dir,
            config_store,
            default_result.config,
            report=console.print,
        )
        if not models:
            raise NoModelsFoundError(app_config.models_dir)
        console.print(f"{OK} Found {len(models)} model(s).")
    except ConfigurationError as exc:
        logger.error("Startup failed: %s", exc)
        console.print(f"{FAILED} {exc}")
        sys.exit(1)

    if args.list:
        for model in models:
            console.print(f"  {model.path.name}")
        sys.exit(0)

    if app_config.startup_freeze > 0:
        time.sleep(app_config.startup_freeze / 1000.0)

    from sulmo.engine.store import SessionStore
    from sulmo.tui.app import SulmoApp

    store = SessionStore(
        [model.as_pair() for model in models],
        launcher=app_config.launcher,
        timeout_seconds=app_config.timeout,
        on_history_changed=config_store.history_listener(),
    )
    app = SulmoApp(store, app_config)
    try:
        app.run()
    finally:
        store.shutdown()
        logger.info("Sulmo exited")


if __name__ == "__main__":
    main()
