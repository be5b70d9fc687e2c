"""Tests for the YAML config store and history persistence."""

from __future__ import annotations

import yaml

from sulmo.engine.config import AppConfig, GenerationConfig
from sulmo.engine.session import Session
from sulmo.shared.services.config_store import ConfigStore, LoadStatus


def test_missing_app_config_is_created_with_defaults(tmp_path):
    store = ConfigStore(tmp_path / "configs")

    result = store.load_app_config()

    assert result.status is LoadStatus.CREATED
    assert result.config == AppConfig()
    saved = yaml.safe_load(store.app_config_path.read_text(encoding="utf-8"))
    assert saved["timeout"] == 420.0
    assert saved["executable"] == "llama-cpp/main"


def test_existing_app_config_is_loaded(tmp_path):
    store = ConfigStore(tmp_path)
    store.app_config_path.write_text("timeout: 60\ntick_rate: 100\n", encoding="utf-8")

    result = store.load_app_config()

    assert result.status is LoadStatus.LOADED
    assert result.config.timeout == 60.0
    assert result.config.tick_rate == 100
    assert result.config.startup_freeze == 1000


def test_corrupt_config_is_replaced_by_defaults(tmp_path):
    store = ConfigStore(tmp_path)
    store.app_config_path.write_text("timeout: [unclosed\n", encoding="utf-8")

    result = store.load_app_config()

    assert result.status is LoadStatus.CREATED
    assert result.config == AppConfig()


def test_non_mapping_config_is_replaced_by_defaults(tmp_path):
    store = ConfigStore(tmp_path)
    store.default_model_config_path.write_text("- just\n- a list\n", encoding="utf-8")

    result = store.load_default_generation_config()

    assert result.status is LoadStatus.CREATED
    assert result.config.prompt_prefix == "###Instruction: "


def test_unwritable_config_still_returns_defaults(tmp_path, monkeypatch):
    store = ConfigStore(tmp_path)

    def _fail(path, data):
        raise PermissionError("read-only filesystem")

    monkeypatch.setattr(ConfigStore, "_write_yaml", staticmethod(_fail))
    result = store.load_app_config()

    assert result.status is LoadStatus.UNSAVED
    assert result.config == AppConfig()
    assert "read-only" in result.error


def test_model_config_is_seeded_from_default_without_sharing_it(tmp_path):
    store = ConfigStore(tmp_path)
    default = GenerationConfig(threads_used=3, randomness=0.1)

    result = store.load_generation_config(tmp_path / "models" / "alpha.gguf", default)

    assert result.status is LoadStatus.CREATED
    assert result.path == tmp_path / "alpha.yaml"
    assert result.config == default
    assert result.config is not default


def test_persist_history_writes_only_on_change(tmp_path):
    store = ConfigStore(tmp_path)
    config = GenerationConfig(threads_used=2)
    snapshot = [{"raw_input": "q", "formatted_prompt": "[q]", "response": "a"}]

    assert store.persist_history("alpha.gguf", config, snapshot) is True
    assert store.persist_history("alpha.gguf", config, snapshot) is False

    saved = yaml.safe_load(store.model_config_path("alpha.gguf").read_text(encoding="utf-8"))
    assert saved["history"] == snapshot
    assert saved["threads_used"] == 2


def test_persisted_history_survives_a_restart(tmp_path):
    store = ConfigStore(tmp_path)
    config = GenerationConfig(
        threads_used=1,
        history=[
            {"raw_input": "hi", "formatted_prompt": "<hi>", "response": "hello"},
            {"raw_input": "bye", "formatted_prompt": "<bye>", "response": "later"},
        ],
    )
    session = Session("alpha.gguf", config, on_history_changed=store.history_listener())

    session.delete_last_exchange()

    reloaded = store.load_generation_config("alpha.gguf", GenerationConfig())
    restored = Session("alpha.gguf", reloaded.config)
    assert reloaded.status is LoadStatus.LOADED
    assert restored.history_pairs() == [("hi", "hello")]
