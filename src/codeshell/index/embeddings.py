"""Embedding generation with a local service, FastEmbed, or a hash fallback."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import math
import os
import warnings
from typing import Protocol

import httpx

from codeshell.core.config import EmbeddingConfig

logger = logging.getLogger(__name__)


def _suppress_hf_warnings() -> None:
    """Suppress noisy HuggingFace/tokenizers warnings during embedding model load."""
    os.environ.setdefault("TOKENIZERS_PARALLELISM", "false")
    os.environ.setdefault("HF_HUB_DISABLE_PROGRESS_BARS", "1")
    warnings.filterwarnings("ignore", message=".*huggingface.*", category=FutureWarning)
    warnings.filterwarnings("ignore", module="huggingface_hub")


class EmbeddingBackend(Protocol):
    name: str
    semantic: bool

    async def embed(self, text: str) -> list[float]: ...


class ServiceEmbeddingBackend:
    """Local HTTP embedding service: POST ``{text, model}``, read ``embedding``."""

    name = "service"
    semantic = True

    def __init__(self, config: EmbeddingConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(transport=self._transport, timeout=self.config.timeout)
        return self._client

    async def embed(self, text: str) -> list[float]:
        response = await self._get_client().post(
            self.config.service_url,
            json={"text": text, "model": self.config.model},
        )
        response.raise_for_status()
        embedding = response.json().get("embedding")
        if not isinstance(embedding, list) or not embedding:
            raise ValueError(f"Embedding service returned no vector for model {self.config.model}")
        return [float(x) for x in embedding]

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class FastEmbedBackend:
    """Local embedding backend using FastEmbed (ONNX Runtime)."""

    name = "fastembed"
    semantic = True

    _model_cache: dict[str, object] = {}  # class-level cache for model instances

    def __init__(self, config: EmbeddingConfig):
        self.model_name = config.model

    def _get_model(self):
        if self.model_name not in self._model_cache:
            _suppress_hf_warnings()
            from fastembed import TextEmbedding

            self._model_cache[self.model_name] = TextEmbedding(model_name=self.model_name)
        return self._model_cache[self.model_name]

    def _embed_sync(self, text: str) -> list[float]:
        model = self._get_model()
        result = list(model.embed([text]))
        return result[0].tolist()

    async def embed(self, text: str) -> list[float]:
        # ONNX inference is CPU-bound; keep it off the event loop.
        return await asyncio.to_thread(self._embed_sync, text)


class HashEmbeddingBackend:
    """Deterministic character-code vectors. NOT a semantic embedding.

    Similar strings get similar vectors only in a trivial lexical sense.
    Meant for development and tests when no real model is reachable.
    """

    name = "hash"
    semantic = False

    def __init__(self, dimensions: int = 384):
        self.dimensions = dimensions

    def embed_sync(self, text: str) -> list[float]:
        vector = [0.0] * self.dimensions
        for i, char in enumerate(text):
            vector[i % self.dimensions] += ord(char)
        magnitude = math.sqrt(sum(v * v for v in vector))
        if magnitude > 0:
            vector = [v / magnitude for v in vector]
        return vector

    async def embed(self, text: str) -> list[float]:
        return self.embed_sync(text)


def create_backend(config: EmbeddingConfig) -> EmbeddingBackend:
    if config.provider == "fastembed":
        return FastEmbedBackend(config)
    if config.provider == "hash":
        return HashEmbeddingBackend(config.dimensions)
    if config.provider == "service":
        return ServiceEmbeddingBackend(config)
    raise ValueError(f"Unknown embedding provider: {config.provider!r}")


class EmbeddingProvider:
    """Generates and caches embeddings for the embedding store.

    Vectors are cached in memory by content hash. When the configured
    backend fails and ``fallback_to_hash`` is set, the hash backend answers
    instead and a warning is logged the first time that happens.
    """

    def __init__(self, config: EmbeddingConfig | None = None, backend: EmbeddingBackend | None = None):
        self.config = config or EmbeddingConfig()
        self.backend = backend or create_backend(self.config)
        self.fallback = HashEmbeddingBackend(self.config.dimensions)
        self.used_fallback = False
        self._cache: dict[str, list[float]] = {}

    def content_hash(self, text: str) -> str:
        """Cache key; includes provider and model so switching models invalidates it."""
        key = f"{self.backend.name}:{self.config.model}:{text}"
        return hashlib.sha256(key.encode()).hexdigest()

    @property
    def semantic(self) -> bool:
        return self.backend.semantic and not self.used_fallback

    def source_of(self, backend: EmbeddingBackend) -> str:
        """Label for the vector space a backend produces. Vectors from
        different sources are never compared."""
        if isinstance(backend, HashEmbeddingBackend):
            return f"hash:{backend.dimensions}"
        return f"{backend.name}:{self.config.model}"

    async def embed(self, text: str) -> list[float]:
        """Embedding for ``text``, from cache when available."""
        embedding, _ = await self.embed_with_source(text)
        return embedding

    async def embed_with_source(self, text: str) -> tuple[list[float], str]:
        """Embedding for ``text`` plus the source that produced it."""
        ch = self.content_hash(text)
        cached = self._cache.get(ch)
        if cached is not None:
            return cached, self.source_of(self.backend)

        try:
            embedding = await self.backend.embed(text)
        except Exception as exc:
            if not self.config.fallback_to_hash or self.backend is self.fallback:
                raise
            if not self.used_fallback:
                logger.warning(
                    "Embedding backend %s failed (%s); falling back to non-semantic hash vectors",
                    self.backend.name,
                    exc,
                )
            self.used_fallback = True
            # Fallback vectors are never cached so a recovered backend takes over.
            return self.fallback.embed_sync(text), self.source_of(self.fallback)

        self._cache[ch] = embedding
        return embedding, self.source_of(self.backend)

    async def close(self) -> None:
        close = getattr(self.backend, "close", None)
        if close is not None:
            await close()
