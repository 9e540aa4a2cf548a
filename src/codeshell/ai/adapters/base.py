"""Adapter contract shared by every model backend."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal, Protocol, TypeVar

from codeshell.core.errors import BackendTimeout, BackendUnavailable
from codeshell.core.models import DispatchRequest, ModelDescriptor

logger = logging.getLogger(__name__)

AdapterState = Literal["uninitialized", "ready", "unavailable", "disposed"]

T = TypeVar("T")


@dataclass
class AdapterTimeouts:
    """Per-call time bounds in seconds, by operation."""

    inline: float = 10.0
    completion: float = 30.0
    chat: float = 120.0


class ModelAdapter(Protocol):
    """Uniform capability interface over one model backend.

    ``initialize`` never raises: a backend that cannot be probed leaves the
    adapter ``unavailable`` and it is never selected. ``complete`` and
    ``chat`` raise BackendUnavailable, BackendTimeout or BackendRejected.
    ``inline_complete`` degrades to an empty suggestion instead, unless the
    caller passes ``raise_errors=True`` to see the failure.
    """

    descriptor: ModelDescriptor
    state: AdapterState

    async def initialize(self) -> None: ...

    async def complete(self, request: DispatchRequest) -> str: ...

    async def chat(self, request: DispatchRequest) -> str: ...

    async def inline_complete(self, request: DispatchRequest, *, raise_errors: bool = False) -> str: ...

    async def probe(self) -> None: ...

    def is_available(self) -> bool: ...

    async def cleanup(self) -> None: ...


# Registry: provider tag -> adapter class
_ADAPTERS: dict[str, Callable[..., ModelAdapter]] = {}


def register_adapter(providers: list[str]):
    """Decorator to register an adapter class for one or more provider tags.

    Usage::

        @register_adapter(["openai", "mistral"])
        class OpenAICompatibleAdapter:
            ...
    """

    def decorator(cls):
        for provider in providers:
            _ADAPTERS[provider] = cls
        return cls

    return decorator


def get_adapter_class(provider: str) -> Callable[..., ModelAdapter] | None:
    """Return the adapter class registered for a provider tag, or None."""
    return _ADAPTERS.get(provider)


def get_supported_providers() -> set[str]:
    return set(_ADAPTERS)


def create_adapter(
    descriptor: ModelDescriptor,
    timeouts: AdapterTimeouts | None = None,
) -> ModelAdapter | None:
    """Instantiate the adapter for a descriptor's provider.

    Returns None (and logs a warning) for an unknown provider.
    """
    adapter_cls = get_adapter_class(descriptor.provider)
    if adapter_cls is None:
        logger.warning("Unknown model provider %r for model %s", descriptor.provider, descriptor.id)
        return None
    return adapter_cls(descriptor, timeouts=timeouts or AdapterTimeouts())


def sdk_base_url(endpoint: str, suffix: str) -> str | None:
    """Turn a full request endpoint into the base URL an SDK client expects.

    ``https://api.openai.com/v1/chat/completions`` with suffix
    ``/chat/completions`` becomes ``https://api.openai.com/v1``.
    """
    if not endpoint:
        return None
    endpoint = endpoint.rstrip("/")
    if endpoint.endswith(suffix):
        return endpoint[: -len(suffix)]
    return endpoint


def require_ready(adapter: ModelAdapter, operation: str) -> None:
    if adapter.state != "ready":
        raise BackendUnavailable(adapter.descriptor.id, operation, f"adapter is {adapter.state}")


async def bounded(
    call: Awaitable[T],
    timeout: float,
    descriptor: ModelDescriptor,
    operation: str,
) -> T:
    """Await a backend call under a hard time bound.

    No partial response is returned on timeout.
    """
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise BackendTimeout(descriptor.id, operation, f"no answer within {timeout:g}s") from exc
