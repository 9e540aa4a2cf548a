"""Anthropic Messages API adapter."""

from __future__ import annotations

import logging
from typing import Any

import anthropic

from codeshell.ai.adapters.base import (
    AdapterState,
    AdapterTimeouts,
    bounded,
    register_adapter,
    require_ready,
    sdk_base_url,
)
from codeshell.ai.prompts import (
    CHAT_SYSTEM_PROMPT,
    build_chat_messages,
    build_completion_prompt,
    build_inline_prompt,
    clean_inline_completion,
)
from codeshell.core.errors import BackendError, BackendRejected, BackendTimeout, BackendUnavailable
from codeshell.core.models import DispatchRequest, ModelDescriptor

logger = logging.getLogger(__name__)


@register_adapter(["anthropic"])
class AnthropicAdapter:
    """Claude models through ``anthropic.AsyncAnthropic``.

    Initialization only checks that a credential is present; the first real
    call is the first network contact.
    """

    def __init__(
        self,
        descriptor: ModelDescriptor,
        timeouts: AdapterTimeouts | None = None,
        client: Any | None = None,
    ):
        self.descriptor = descriptor
        self.timeouts = timeouts or AdapterTimeouts()
        self.state: AdapterState = "uninitialized"
        self._client = client

    async def initialize(self) -> None:
        if not self.descriptor.api_key:
            self.state = "unavailable"
            logger.warning("Anthropic API key not found. %s will be unavailable.", self.descriptor.name)
            return

        if self._client is None:
            kwargs: dict[str, Any] = {"api_key": self.descriptor.api_key, "max_retries": 1}
            base_url = sdk_base_url(self.descriptor.endpoint, "/v1/messages")
            if base_url:
                kwargs["base_url"] = base_url
            self._client = anthropic.AsyncAnthropic(**kwargs)

        self.state = "ready"
        logger.info("Initialized model: %s", self.descriptor.name)

    async def _create(
        self,
        messages: list[dict[str, str]],
        request: DispatchRequest,
        operation: str,
        timeout: float,
        system: str | None = None,
        stop: list[str] | None = None,
    ) -> str:
        require_ready(self, operation)
        kwargs: dict[str, Any] = {
            "model": self.descriptor.backend_model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": messages,
            "timeout": timeout,
        }
        if system:
            kwargs["system"] = system
        # The Messages API rejects whitespace-only stop sequences.
        stop = [s for s in (stop or []) if s.strip()]
        if stop:
            kwargs["stop_sequences"] = stop

        try:
            response = await bounded(
                self._client.messages.create(**kwargs),
                timeout,
                self.descriptor,
                operation,
            )
        except anthropic.APITimeoutError as exc:
            raise BackendTimeout(self.descriptor.id, operation, str(exc)) from exc
        except anthropic.APIConnectionError as exc:
            raise BackendUnavailable(self.descriptor.id, operation, str(exc)) from exc
        except anthropic.APIStatusError as exc:
            raise BackendRejected(
                self.descriptor.id,
                operation,
                f"HTTP {exc.status_code}",
                status_code=exc.status_code,
            ) from exc

        if not response.content:
            return ""
        return getattr(response.content[0], "text", "") or ""

    async def complete(self, request: DispatchRequest) -> str:
        prompt = f"Complete this code:\n{build_completion_prompt(request)}"
        return await self._create(
            [{"role": "user", "content": prompt}],
            request,
            "completion",
            self.timeouts.completion,
            stop=request.stop_sequences,
        )

    async def chat(self, request: DispatchRequest) -> str:
        return await self._create(
            build_chat_messages(request),
            request,
            "chat",
            self.timeouts.chat,
            system=request.system_prompt or CHAT_SYSTEM_PROMPT,
        )

    async def inline_complete(self, request: DispatchRequest, *, raise_errors: bool = False) -> str:
        try:
            raw = await self._create(
                [{"role": "user", "content": build_inline_prompt(request)}],
                request,
                "inline-completion",
                self.timeouts.inline,
            )
        except BackendError as exc:
            if raise_errors:
                raise
            logger.debug("Inline completion degraded to empty: %s", exc)
            return ""
        return clean_inline_completion(raw)

    async def probe(self) -> None:
        """Minimal 10-token call used to validate a credential."""
        probe = DispatchRequest(task_type="chat", payload="test", max_tokens=10, temperature=0.0)
        await self._create(
            [{"role": "user", "content": "test"}],
            probe,
            "probe",
            self.timeouts.inline,
        )

    def is_available(self) -> bool:
        return self.state == "ready"

    async def cleanup(self) -> None:
        if self._client is not None and hasattr(self._client, "close"):
            await self._client.close()
        self._client = None
        self.state = "disposed"
