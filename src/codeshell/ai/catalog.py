"""Built-in model catalogue.

Registration order matters: it is the final tie-break in model selection,
so the fast local model comes first.
"""

from __future__ import annotations

from typing import Any

from codeshell.core.config import AISettings
from codeshell.core.models import ModelDescriptor

OLLAMA_GENERATE = "http://127.0.0.1:11434/api/generate"
EDITOR_LANGUAGES = frozenset({"apex", "javascript", "typescript", "python", "java", "soql"})

DEFAULT_MODELS: tuple[ModelDescriptor, ...] = (
    ModelDescriptor(
        id="codellama-7b-instruct",
        name="Code Llama 7B Instruct (Fast)",
        provider="ollama",
        kind="chat",
        max_tokens=2048,
        context_window=4096,
        specialties=frozenset({"code-completion", "code-generation", "debugging", "chat", "general-coding"}),
        languages=EDITOR_LANGUAGES,
        latency="low",
        locality="local",
        endpoint=OLLAMA_GENERATE,
        model_name="codellama:7b-instruct",
    ),
    ModelDescriptor(
        id="codellama-70b-instruct",
        name="Code Llama 70B Instruct (Powerful)",
        provider="ollama",
        kind="chat",
        max_tokens=4096,
        context_window=16384,
        specialties=frozenset({"complex-reasoning", "architecture", "code-review"}),
        languages=EDITOR_LANGUAGES,
        latency="high",
        locality="local",
        endpoint=OLLAMA_GENERATE,
        model_name="codellama:70b-instruct",
    ),
    ModelDescriptor(
        id="deepseek-coder",
        name="DeepSeek Coder",
        provider="ollama",
        kind="completion",
        max_tokens=2048,
        context_window=16384,
        specialties=frozenset({"code-completion", "code-generation", "inline-completion"}),
        languages=EDITOR_LANGUAGES,
        latency="medium",
        locality="local",
        endpoint=OLLAMA_GENERATE,
        model_name="deepseek-coder",
    ),
    ModelDescriptor(
        id="qwen-coder",
        name="Qwen 2.5 Coder 32B",
        provider="ollama",
        kind="chat",
        max_tokens=4096,
        context_window=32768,
        specialties=frozenset({"code-generation", "refactoring", "general-coding"}),
        languages=EDITOR_LANGUAGES,
        latency="medium",
        locality="local",
        endpoint=OLLAMA_GENERATE,
        model_name="qwen2.5-coder:32b",
    ),
    ModelDescriptor(
        id="llama-3.1",
        name="Llama 3.1 70B",
        provider="ollama",
        kind="chat",
        max_tokens=4096,
        context_window=131072,
        specialties=frozenset({"chat", "complex-reasoning"}),
        languages=EDITOR_LANGUAGES,
        latency="high",
        locality="local",
        endpoint=OLLAMA_GENERATE,
        model_name="llama3.1:70b",
    ),
    ModelDescriptor(
        id="claude-code",
        name="Claude Code",
        provider="anthropic",
        kind="chat",
        max_tokens=4096,
        context_window=200000,
        specialties=frozenset({"code-review", "architecture", "complex-reasoning"}),
        languages=EDITOR_LANGUAGES,
        latency="low",
        locality="cloud",
        endpoint="https://api.anthropic.com/v1/messages",
        model_name="claude-3-5-sonnet-20241022",
    ),
    ModelDescriptor(
        id="gpt-4-turbo",
        name="GPT-4 Turbo",
        provider="openai",
        kind="chat",
        max_tokens=4096,
        context_window=128000,
        specialties=frozenset({"general-coding", "reasoning", "complex-tasks"}),
        languages=EDITOR_LANGUAGES,
        latency="low",
        locality="cloud",
        endpoint="https://api.openai.com/v1/chat/completions",
        model_name="gpt-4-turbo-preview",
    ),
    ModelDescriptor(
        id="codestral",
        name="Codestral",
        provider="mistral",
        kind="completion",
        max_tokens=4096,
        context_window=32000,
        specialties=frozenset({"code-completion", "code-generation", "inline-completion"}),
        languages=EDITOR_LANGUAGES,
        latency="low",
        locality="cloud",
        endpoint="https://api.mistral.ai/v1/chat/completions",
        model_name="codestral-latest",
    ),
)


def build_catalog(
    settings: AISettings | None = None,
    ollama_base_url: str | None = None,
) -> list[ModelDescriptor]:
    """Default descriptors with credentials and user overrides applied.

    ``settings.model_overrides`` maps a model id to either a partial dict
    (merged over the built-in descriptor) or a full descriptor dict for a
    model that is not built in. Overrides are appended in their own order
    after the built-ins.
    """
    settings = settings or AISettings()
    catalog: list[ModelDescriptor] = []
    seen: set[str] = set()

    for descriptor in DEFAULT_MODELS:
        override = settings.model_overrides.get(descriptor.id)
        if override:
            merged: dict[str, Any] = {**_descriptor_fields(descriptor), **_normalize_override(override)}
            descriptor = ModelDescriptor.from_dict(merged)
        catalog.append(descriptor)
        seen.add(descriptor.id)

    for model_id, data in settings.model_overrides.items():
        if model_id in seen:
            continue
        catalog.append(ModelDescriptor.from_dict({"id": model_id, **_normalize_override(data)}))

    resolved = []
    for descriptor in catalog:
        if descriptor.locality == "local" and ollama_base_url and descriptor.endpoint == OLLAMA_GENERATE:
            descriptor = ModelDescriptor.from_dict(
                {**_descriptor_fields(descriptor), "endpoint": f"{ollama_base_url.rstrip('/')}/api/generate"}
            )
        if descriptor.locality == "cloud" and not descriptor.api_key:
            descriptor = descriptor.with_credential(settings.resolve_api_key(descriptor.provider))
        resolved.append(descriptor)
    return resolved


def _descriptor_fields(descriptor: ModelDescriptor) -> dict[str, Any]:
    data = descriptor.to_dict()
    data["model_name"] = descriptor.model_name
    data["api_key"] = descriptor.api_key
    return data


# Settings files written by older versions use camelCase keys.
_LEGACY_KEYS = {
    "maxTokens": "max_tokens",
    "contextWindow": "context_window",
    "modelName": "model_name",
    "apiKey": "api_key",
    "type": "kind",
}


def _normalize_override(override: dict[str, Any]) -> dict[str, Any]:
    data = {_LEGACY_KEYS.get(key, key): value for key, value in override.items()}
    if "isLocal" in data and "locality" not in data:
        data["locality"] = "local" if data["isLocal"] else "cloud"
    data.pop("isLocal", None)
    return data
