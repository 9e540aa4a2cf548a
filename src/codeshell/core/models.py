"""Core data models for Codeshell."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field, replace
from typing import Any, Literal

CapabilityKind = Literal["completion", "chat", "embedding"]
LatencyClass = Literal["low", "medium", "high"]
Locality = Literal["local", "cloud"]
TaskType = Literal["completion", "chat", "inline-completion"]
TransactionKind = Literal["request", "response", "error", "info"]
SymbolKind = Literal["class", "method", "function", "variable", "interface", "enum"]

LATENCY_CLASSES = ("low", "medium", "high")
LOCALITIES = ("local", "cloud")


def estimate_tokens(text: str) -> int:
    """Rough token estimate: one token per four characters, rounded up."""
    return math.ceil(len(text) / 4)


@dataclass(frozen=True)
class ModelDescriptor:
    """Static capability metadata for one configured model backend.

    Immutable once registered. Rotating a credential produces a new
    descriptor via :meth:`with_credential`.
    """

    id: str
    name: str
    provider: str  # "ollama", "anthropic", "openai", "mistral", "deepseek"
    kind: CapabilityKind = "chat"
    max_tokens: int = 2048
    context_window: int = 4096
    specialties: frozenset[str] = frozenset()
    languages: frozenset[str] = frozenset()
    latency: LatencyClass = "medium"
    locality: Locality = "cloud"
    endpoint: str = ""
    model_name: str | None = None  # backend-side model tag, defaults to id
    api_key: str | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.latency not in LATENCY_CLASSES:
            raise ValueError(f"Invalid latency class {self.latency!r} for model {self.id!r}")
        if self.locality not in LOCALITIES:
            raise ValueError(f"Invalid locality {self.locality!r} for model {self.id!r}")
        # Accept any iterable for the tag sets but store them frozen.
        object.__setattr__(self, "specialties", frozenset(self.specialties))
        object.__setattr__(self, "languages", frozenset(self.languages))

    @property
    def is_local(self) -> bool:
        return self.locality == "local"

    @property
    def backend_model(self) -> str:
        """Model tag sent to the backend."""
        return self.model_name or self.id

    def with_credential(self, api_key: str | None) -> ModelDescriptor:
        """Return a copy of this descriptor carrying a new credential."""
        return replace(self, api_key=api_key)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ModelDescriptor:
        """Create a descriptor from a settings-style dict.

        Accepts both snake_case keys and the ``isLocal``/``contextWindow``
        style used by older settings files.
        """
        locality = data.get("locality")
        if locality is None and "isLocal" in data:
            locality = "local" if data["isLocal"] else "cloud"
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            provider=data["provider"],
            kind=data.get("kind", data.get("type", "chat")),
            max_tokens=int(data.get("max_tokens", data.get("maxTokens", 2048))),
            context_window=int(data.get("context_window", data.get("contextWindow", 4096))),
            specialties=frozenset(data.get("specialties", ())),
            languages=frozenset(data.get("languages", ())),
            latency=data.get("latency", "medium"),
            locality=locality or "cloud",
            endpoint=data.get("endpoint", ""),
            model_name=data.get("model_name"),
            api_key=data.get("api_key", data.get("apiKey")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for display. The credential is never included."""
        return {
            "id": self.id,
            "name": self.name,
            "provider": self.provider,
            "kind": self.kind,
            "max_tokens": self.max_tokens,
            "context_window": self.context_window,
            "specialties": sorted(self.specialties),
            "languages": sorted(self.languages),
            "latency": self.latency,
            "locality": self.locality,
            "endpoint": self.endpoint,
        }


@dataclass
class ChatMessage:
    """One turn of a chat conversation."""

    role: str  # "user", "assistant", "system"
    content: str
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatMessage:
        return cls(
            role=data.get("role", "user"),
            content=data.get("content", ""),
            timestamp=data.get("timestamp", time.time()),
        )


@dataclass
class CursorPosition:
    """Zero-based cursor location inside the code sent for inline completion."""

    line: int = 0
    column: int = 0
    language: str | None = None


@dataclass
class TaskContext:
    """Structured editor context that accompanies a dispatch."""

    language: str | None = None
    file_path: str | None = None
    selection: str | None = None
    history: list[ChatMessage] = field(default_factory=list)
    code: str | None = None
    position: CursorPosition | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> TaskContext:
        """Build a context from the loose dict an editor collaborator sends."""
        if not data:
            return cls()
        position = data.get("position")
        if isinstance(position, dict):
            position = CursorPosition(
                line=int(position.get("line", 0)),
                column=int(position.get("column", 0)),
                language=position.get("language"),
            )
        history = [
            m if isinstance(m, ChatMessage) else ChatMessage.from_dict(m)
            for m in data.get("history", [])
        ]
        return cls(
            language=data.get("language"),
            file_path=data.get("file_path", data.get("filePath")),
            selection=data.get("selection"),
            history=history,
            code=data.get("code"),
            position=position,
        )

    def size_tokens(self) -> int:
        """Estimated token footprint of everything in the context."""
        chars = sum(len(m.content) for m in self.history)
        chars += len(self.code or "") + len(self.selection or "")
        return math.ceil(chars / 4)


@dataclass
class DispatchRequest:
    """A single generic request handed to an adapter."""

    task_type: TaskType
    payload: str
    context: TaskContext = field(default_factory=TaskContext)
    max_tokens: int = 1024
    temperature: float = 0.3
    stop_sequences: list[str] | None = None
    system_prompt: str | None = None

    @property
    def language(self) -> str:
        if self.context.position is not None and self.context.position.language:
            return self.context.position.language
        return self.context.language or "text"


@dataclass
class Transaction:
    """One logged dispatch event."""

    id: str
    timestamp: float
    kind: TransactionKind
    model: str
    operation: str
    prompt: str | None = None
    response: str | None = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "kind": self.kind,
            "model": self.model,
            "operation": self.operation,
            "prompt": self.prompt,
            "response": self.response,
            "error": self.error,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class Symbol:
    """A named code construct found by the line scanner."""

    id: str
    name: str
    kind: SymbolKind
    file_path: str
    start_line: int
    end_line: int
    signature: str
    language: str
    documentation: str | None = None

    @staticmethod
    def make_id(file_path: str, name: str, line: int) -> str:
        return f"{file_path}:{name}:{line}"


@dataclass
class FileIndexEntry:
    """Indexed state of one file. Symbols are replaced wholesale on re-index."""

    file_path: str
    content: str
    content_hash: str
    language: str
    last_modified: float
    symbols: list[Symbol] = field(default_factory=list)


@dataclass
class EmbeddingRecord:
    """A stored vector for a chunk (sub-range) of a file."""

    id: str
    file_path: str
    content: str
    embedding: list[float]
    language: str
    start_line: int
    end_line: int
    symbol_type: str | None = None
    created_at: float = field(default_factory=time.time)
    source: str = ""  # vector space label, see EmbeddingProvider.source_of


@dataclass
class SimilarityResult:
    """A ranked hit from the embedding store."""

    id: str
    file_path: str
    content: str
    similarity: float
    language: str
    start_line: int
    end_line: int
