"""Configuration resolution: explicit settings > env > defaults."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from codeshell.core.errors import atomic_write

logger = logging.getLogger(__name__)

PROVIDERS = ("anthropic", "openai", "mistral", "deepseek")


def redact_api_key(key: str | None) -> str | None:
    """Redact an API key, showing only the first 4 and last 4 characters.

    Returns None if the key is None, or the redacted string otherwise.
    Short keys (8 chars or fewer) are fully redacted as '****'.
    """
    if key is None:
        return None
    if len(key) <= 8:
        return "****"
    return f"{key[:4]}...{key[-4:]}"


@dataclass
class Preferences:
    """User preferences that steer model selection and request limits."""

    primary_model: str = "codellama-7b-instruct"
    prefer_local: bool = True
    # Model id that wins over the selection filters whenever it is ready.
    pinned_model: str | None = None
    max_tokens: int = 1024
    temperature: float = 0.3

    def to_dict(self) -> dict[str, Any]:
        return {
            "primary_model": self.primary_model,
            "prefer_local": self.prefer_local,
            "pinned_model": self.pinned_model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }


@dataclass
class AISettings:
    """Loaded AI settings: API keys, preferences and per-model overrides.

    Key resolution order for a provider:
    - explicit key stored in ``api_keys``
    - ``<PROVIDER>_API_KEY`` environment variable (e.g. ANTHROPIC_API_KEY)
    """

    api_keys: dict[str, str] = field(default_factory=dict)
    preferences: Preferences = field(default_factory=Preferences)
    model_overrides: dict[str, dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> AISettings:
        """Create AISettings from a dict, merging over defaults.

        Accepts the camelCase keys written by older settings files.
        """
        config = cls()

        api_keys = data.get("api_keys", data.get("apiKeys", {})) or {}
        config.api_keys = {k: v for k, v in api_keys.items() if v}

        prefs = data.get("preferences", {}) or {}
        if "primary_model" in prefs or "primaryModel" in prefs:
            config.preferences.primary_model = prefs.get("primary_model", prefs.get("primaryModel"))
        if "prefer_local" in prefs or "preferLocal" in prefs:
            config.preferences.prefer_local = bool(prefs.get("prefer_local", prefs.get("preferLocal")))
        if "pinned_model" in prefs:
            config.preferences.pinned_model = prefs["pinned_model"]
        if "max_tokens" in prefs or "maxTokens" in prefs:
            config.preferences.max_tokens = int(prefs.get("max_tokens", prefs.get("maxTokens")))
        if "temperature" in prefs:
            config.preferences.temperature = float(prefs["temperature"])

        overrides = data.get("model_overrides", data.get("modelConfigs", {})) or {}
        config.model_overrides = dict(overrides)
        return config

    def to_dict(self) -> dict[str, Any]:
        return {
            "api_keys": dict(self.api_keys),
            "preferences": self.preferences.to_dict(),
            "model_overrides": dict(self.model_overrides),
        }

    def resolve_api_key(self, provider: str) -> str | None:
        """Resolve the API key: explicit > env var per provider."""
        explicit = self.api_keys.get(provider)
        if explicit:
            return explicit
        return os.environ.get(f"{provider.upper()}_API_KEY") or None


@dataclass
class EmbeddingConfig:
    """Configuration for embedding generation.

    Supports three backends:
    - "service": local HTTP embedding service (default)
    - "fastembed": local ONNX-based embeddings
    - "hash": deterministic character-code vectors, NOT semantic.
      Only for development and tests when no real model is reachable.
    """

    provider: str = "service"
    model: str = "all-MiniLM-L6-v2"
    dimensions: int = 384
    service_url: str = "http://localhost:8000/embed"
    timeout: float = 10.0
    fallback_to_hash: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> EmbeddingConfig:
        """Create EmbeddingConfig from a dict."""
        config = cls()
        if "provider" in data:
            config.provider = data["provider"]
        if "model" in data:
            config.model = data["model"]
        if "dimensions" in data:
            config.dimensions = data["dimensions"]
        if "service_url" in data:
            config.service_url = data["service_url"]
        if "timeout" in data:
            config.timeout = data["timeout"]
        if "fallback_to_hash" in data:
            config.fallback_to_hash = data["fallback_to_hash"]
        return config


class SettingsStore:
    """Persists AISettings as a JSON file.

    A missing or unreadable file yields defaults; every mutation is written
    back atomically.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.settings = AISettings()

    def load(self) -> AISettings:
        if not self.path.exists():
            self.settings = AISettings()
            return self.settings
        try:
            self.settings = AISettings.from_dict(json.loads(self.path.read_text()))
        except (json.JSONDecodeError, OSError, ValueError, TypeError):
            logger.warning("Failed to load settings from %s, using defaults", self.path)
            self.settings = AISettings()
        return self.settings

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write(self.path, json.dumps(self.settings.to_dict(), indent=2))
        logger.debug("Settings saved to %s", self.path)

    def update_api_key(self, provider: str, api_key: str) -> None:
        self.settings.api_keys[provider] = api_key
        self.save()

    def remove_api_key(self, provider: str) -> None:
        self.settings.api_keys.pop(provider, None)
        self.save()

    def update_preferences(self, **changes: Any) -> None:
        prefs = self.settings.preferences
        for name, value in changes.items():
            if not hasattr(prefs, name):
                raise ValueError(f"Unknown preference: {name!r}")
            setattr(prefs, name, value)
        self.save()

    def set_primary_model(self, model_id: str) -> None:
        self.update_preferences(primary_model=model_id)
