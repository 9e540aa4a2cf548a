"""Tests for process Settings, AISettings, EmbeddingConfig and SettingsStore."""

from __future__ import annotations

import json

import pytest

from codeshell.config import Settings, get_settings, reset_settings
from codeshell.core.config import AISettings, EmbeddingConfig, Preferences, SettingsStore, redact_api_key

# ---------------------------------------------------------------------------
# Settings (pydantic-settings)
# ---------------------------------------------------------------------------


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.transaction_capacity == 100
        assert settings.ollama_base_url == "http://127.0.0.1:11434"
        assert settings.embedding_service_url == "http://localhost:8000/embed"
        assert (settings.inline_timeout, settings.completion_timeout, settings.chat_timeout) == (10.0, 30.0, 120.0)
        assert settings.persist_index is False

    def test_env_prefix(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CODESHELL_STORAGE_DIR", str(tmp_path / "state"))
        monkeypatch.setenv("CODESHELL_TRANSACTION_CAPACITY", "7")
        settings = Settings()
        assert settings.storage_dir == tmp_path / "state"
        assert settings.transaction_capacity == 7
        assert settings.settings_file == tmp_path / "state" / "ai-settings.json"
        assert settings.index_db_url == f"sqlite:///{tmp_path / 'state' / 'index.db'}"

    def test_capacity_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("CODESHELL_TRANSACTION_CAPACITY", "0")
        with pytest.raises(ValueError):
            Settings()

    def test_get_settings_is_cached_until_reset(self, monkeypatch):
        first = get_settings()
        assert get_settings() is first
        monkeypatch.setenv("CODESHELL_CHAT_TIMEOUT", "5")
        reset_settings()
        assert get_settings().chat_timeout == 5.0

    def test_ensure_storage_dir(self, tmp_path):
        settings = Settings(storage_dir=tmp_path / "a" / "b")
        settings.ensure_storage_dir()
        assert (tmp_path / "a" / "b").is_dir()


# ---------------------------------------------------------------------------
# AISettings
# ---------------------------------------------------------------------------


class TestAISettings:
    def test_defaults(self):
        config = AISettings()
        assert config.api_keys == {}
        assert config.preferences.primary_model == "codellama-7b-instruct"
        assert config.preferences.prefer_local is True
        assert config.preferences.pinned_model is None

    def test_from_dict_accepts_camel_case(self):
        config = AISettings.from_dict(
            {
                "apiKeys": {"anthropic": "sk-ant-1234567890", "openai": ""},
                "preferences": {"primaryModel": "claude-code", "preferLocal": False, "maxTokens": 2048},
                "modelConfigs": {"custom": {"provider": "ollama", "latency": "low"}},
            }
        )
        assert config.api_keys == {"anthropic": "sk-ant-1234567890"}
        assert config.preferences.primary_model == "claude-code"
        assert config.preferences.prefer_local is False
        assert config.preferences.max_tokens == 2048
        assert config.model_overrides == {"custom": {"provider": "ollama", "latency": "low"}}

    def test_round_trip(self):
        config = AISettings(api_keys={"openai": "sk-x"}, preferences=Preferences(pinned_model="gpt-4-turbo"))
        again = AISettings.from_dict(config.to_dict())
        assert again.to_dict() == config.to_dict()

    def test_resolve_api_key_explicit_beats_env(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")
        assert AISettings().resolve_api_key("openai") == "sk-from-env"
        assert AISettings(api_keys={"openai": "sk-explicit"}).resolve_api_key("openai") == "sk-explicit"

    def test_resolve_api_key_missing(self):
        assert AISettings().resolve_api_key("mistral") is None


class TestRedactApiKey:
    def test_long_key(self):
        assert redact_api_key("sk-ant-abcdefgh12345678") == "sk-a...5678"

    def test_short_key(self):
        assert redact_api_key("short") == "****"

    def test_none(self):
        assert redact_api_key(None) is None


class TestEmbeddingConfig:
    def test_defaults(self):
        config = EmbeddingConfig()
        assert config.provider == "service"
        assert config.model == "all-MiniLM-L6-v2"
        assert config.dimensions == 384
        assert config.fallback_to_hash is True

    def test_from_dict(self):
        config = EmbeddingConfig.from_dict({"provider": "hash", "dimensions": 16, "fallback_to_hash": False})
        assert config.provider == "hash"
        assert config.dimensions == 16
        assert config.fallback_to_hash is False


# ---------------------------------------------------------------------------
# SettingsStore
# ---------------------------------------------------------------------------


class TestSettingsStore:
    def test_missing_file_gives_defaults(self, tmp_storage_dir):
        store = SettingsStore(tmp_storage_dir / "ai-settings.json")
        assert store.load().preferences.primary_model == "codellama-7b-instruct"

    def test_corrupt_file_gives_defaults(self, tmp_storage_dir, caplog):
        path = tmp_storage_dir / "ai-settings.json"
        path.write_text("{not json")
        store = SettingsStore(path)
        assert store.load().api_keys == {}
        assert "using defaults" in caplog.text

    def test_update_api_key_persists(self, tmp_storage_dir):
        path = tmp_storage_dir / "nested" / "ai-settings.json"
        store = SettingsStore(path)
        store.update_api_key("anthropic", "sk-ant-key")
        saved = json.loads(path.read_text())
        assert saved["api_keys"] == {"anthropic": "sk-ant-key"}
        assert SettingsStore(path).load().api_keys == {"anthropic": "sk-ant-key"}

    def test_remove_api_key(self, tmp_storage_dir):
        store = SettingsStore(tmp_storage_dir / "ai-settings.json")
        store.update_api_key("openai", "sk-1")
        store.remove_api_key("openai")
        assert store.load().api_keys == {}

    def test_update_preferences(self, tmp_storage_dir):
        store = SettingsStore(tmp_storage_dir / "ai-settings.json")
        store.update_preferences(prefer_local=False, pinned_model="claude-code")
        prefs = SettingsStore(store.path).load().preferences
        assert prefs.prefer_local is False
        assert prefs.pinned_model == "claude-code"

    def test_update_unknown_preference_raises(self, tmp_storage_dir):
        store = SettingsStore(tmp_storage_dir / "ai-settings.json")
        with pytest.raises(ValueError, match="Unknown preference"):
            store.update_preferences(theme="dark")

    def test_set_primary_model(self, tmp_storage_dir):
        store = SettingsStore(tmp_storage_dir / "ai-settings.json")
        store.set_primary_model("qwen-coder")
        assert SettingsStore(store.path).load().preferences.primary_model == "qwen-coder"
