"""Local generation daemon (Ollama) adapter."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from codeshell.ai.adapters.base import (
    AdapterState,
    AdapterTimeouts,
    bounded,
    register_adapter,
    require_ready,
    sdk_base_url,
)
from codeshell.ai.prompts import (
    INLINE_STOP_SEQUENCES,
    build_chat_transcript,
    build_completion_prompt,
    build_inline_prompt,
    clean_inline_completion,
)
from codeshell.core.errors import BackendError, BackendRejected, BackendTimeout, BackendUnavailable
from codeshell.core.models import DispatchRequest, ModelDescriptor

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:11434"


def _tag_matches(installed: str, wanted: str) -> bool:
    """Match an installed model tag against the configured one.

    ``codellama`` matches ``codellama:latest`` and ``codellama:7b``;
    ``codellama:7b-instruct`` only matches itself.
    """
    if installed == wanted or installed == f"{wanted}:latest":
        return True
    return ":" not in wanted and installed.split(":", 1)[0] == wanted


@register_adapter(["ollama", "local"])
class OllamaAdapter:
    """Talks to a local Ollama daemon over its HTTP API.

    Initialization lists installed models (``/api/tags``); the adapter is
    ready only when the configured tag is installed. Generation goes through
    ``/api/generate`` with streaming disabled.
    """

    def __init__(
        self,
        descriptor: ModelDescriptor,
        timeouts: AdapterTimeouts | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.descriptor = descriptor
        self.timeouts = timeouts or AdapterTimeouts()
        self.state: AdapterState = "uninitialized"
        self.base_url = sdk_base_url(descriptor.endpoint, "/api/generate") or DEFAULT_BASE_URL
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                transport=self._transport,
                timeout=self.timeouts.chat,
            )
        return self._client

    async def initialize(self) -> None:
        wanted = self.descriptor.backend_model
        try:
            response = await self._get_client().get("/api/tags", timeout=self.timeouts.inline)
            response.raise_for_status()
            installed = [m.get("name", "") for m in response.json().get("models", [])]
        except (httpx.HTTPError, ValueError) as exc:
            self.state = "unavailable"
            logger.warning("Ollama not reachable for %s at %s: %s", self.descriptor.name, self.base_url, exc)
            return

        if not any(_tag_matches(name, wanted) for name in installed):
            self.state = "unavailable"
            logger.warning("Model %s not installed in Ollama, %s will be unavailable", wanted, self.descriptor.name)
            return

        self.state = "ready"
        logger.info("Initialized model: %s", self.descriptor.name)

    async def _generate(
        self,
        prompt: str,
        request: DispatchRequest,
        operation: str,
        timeout: float,
        stop: list[str] | None = None,
    ) -> str:
        require_ready(self, operation)
        options: dict[str, Any] = {
            "num_predict": request.max_tokens,
            "temperature": request.temperature,
        }
        if stop:
            options["stop"] = stop
        payload = {
            "model": self.descriptor.backend_model,
            "prompt": prompt,
            "stream": False,
            "options": options,
        }

        try:
            response = await bounded(
                self._get_client().post("/api/generate", json=payload, timeout=timeout),
                timeout,
                self.descriptor,
                operation,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as exc:
            raise BackendTimeout(self.descriptor.id, operation, str(exc)) from exc
        except httpx.HTTPStatusError as exc:
            raise BackendRejected(
                self.descriptor.id,
                operation,
                f"HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise BackendUnavailable(self.descriptor.id, operation, str(exc)) from exc
        except ValueError as exc:
            raise BackendRejected(self.descriptor.id, operation, "malformed response body") from exc

        return data.get("response", "") or ""

    async def complete(self, request: DispatchRequest) -> str:
        return await self._generate(
            build_completion_prompt(request),
            request,
            "completion",
            self.timeouts.completion,
            stop=request.stop_sequences,
        )

    async def chat(self, request: DispatchRequest) -> str:
        return await self._generate(
            build_chat_transcript(request),
            request,
            "chat",
            self.timeouts.chat,
        )

    async def inline_complete(self, request: DispatchRequest, *, raise_errors: bool = False) -> str:
        try:
            raw = await self._generate(
                build_inline_prompt(request),
                request,
                "inline-completion",
                self.timeouts.inline,
                stop=INLINE_STOP_SEQUENCES,
            )
        except BackendError as exc:
            if raise_errors:
                raise
            logger.debug("Inline completion degraded to empty: %s", exc)
            return ""
        return clean_inline_completion(raw)

    async def probe(self) -> None:
        """Re-list installed models; raises BackendUnavailable if the daemon is gone."""
        try:
            response = await self._get_client().get("/api/tags", timeout=self.timeouts.inline)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise BackendUnavailable(self.descriptor.id, "probe", str(exc)) from exc

    def is_available(self) -> bool:
        return self.state == "ready"

    async def cleanup(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self.state != "disposed":
            self.state = "disposed"
            logger.debug("Model %s cleaned up", self.descriptor.name)
