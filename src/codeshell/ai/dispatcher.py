"""Model dispatcher: routes editor requests to the selected adapter.

Every chat, completion and inline dispatch is recorded in the transaction log as a
``request`` followed by either a ``response`` or an ``error``. Adapter
failures never reach the caller: chat and completion return a fallback
message naming the model and operation, inline completion returns "".
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import replace
from functools import partial
from typing import Any

from codeshell.ai.adapters import AdapterTimeouts, ModelAdapter, create_adapter
from codeshell.ai.registry import ModelRegistry, RegistryEntry
from codeshell.ai.selection import SelectionPolicy
from codeshell.ai.transactions import TransactionLog
from codeshell.core.config import AISettings, Preferences, SettingsStore, redact_api_key
from codeshell.core.errors import BackendError, NoModelAvailable, UnknownModel
from codeshell.core.models import (
    CursorPosition,
    DispatchRequest,
    ModelDescriptor,
    TaskContext,
    TaskType,
    Transaction,
    estimate_tokens,
)

logger = logging.getLogger(__name__)

SYSTEM = "system"

CHAT_UNAVAILABLE = "AI chat not available. Please check Ollama connection and ensure models are installed."
COMPLETION_UNAVAILABLE = "AI models not available. Please check Ollama connection."

# Request limits per task type: (max_tokens, temperature).
COMPLETION_LIMITS = (512, 0.2)
INLINE_LIMITS = (128, 0.1)
COMPLETION_STOP_SEQUENCES = ["\n\n", "```"]

AdapterFactory = Callable[[ModelDescriptor, AdapterTimeouts], "ModelAdapter | None"]


def _as_context(context: TaskContext | dict[str, Any] | None) -> TaskContext:
    if isinstance(context, TaskContext):
        return context
    return TaskContext.from_dict(context)


def _as_position(position: CursorPosition | dict[str, Any] | None) -> CursorPosition:
    if isinstance(position, CursorPosition):
        return position
    position = position or {}
    return CursorPosition(
        line=int(position.get("line", 0)),
        column=int(position.get("column", 0)),
        language=position.get("language"),
    )


def _failure_message(entry: RegistryEntry, operation: str, exc: Exception) -> str:
    reason = exc.reason if isinstance(exc, BackendError) else "unexpected error"
    return (
        f"Sorry, I encountered an error during {operation} with {entry.descriptor.name} "
        f"({reason}). Please try again."
    )


class ModelDispatcher:
    """Serves chat, completion and inline completion over the registry.

    Each call re-runs selection, so the dispatcher adapts as backends come
    and go. ``current_model`` is only the status/default display pointer.
    """

    def __init__(
        self,
        registry: ModelRegistry,
        transactions: TransactionLog,
        policy: SelectionPolicy | None = None,
        ai_settings: AISettings | None = None,
        settings_store: SettingsStore | None = None,
        timeouts: AdapterTimeouts | None = None,
        adapter_factory: AdapterFactory | None = None,
    ):
        self.registry = registry
        self.transactions = transactions
        self.policy = policy or SelectionPolicy(registry)
        self.settings_store = settings_store
        if ai_settings is None:
            ai_settings = settings_store.settings if settings_store is not None else AISettings()
        self.ai_settings = ai_settings
        self.timeouts = timeouts or AdapterTimeouts()
        self._adapter_factory = adapter_factory or create_adapter
        self.current_model: str | None = None

    @property
    def preferences(self) -> Preferences:
        return self.ai_settings.preferences

    # -- lifecycle ---------------------------------------------------------

    async def initialize(self, descriptors: Iterable[ModelDescriptor]) -> None:
        """Register and probe every descriptor; never raises.

        Models that fail to initialize stay registered as unavailable. The
        current model becomes the configured primary model when it is ready,
        else the first ready model.
        """
        self.transactions.append("info", SYSTEM, "initialize", response="AI Model Manager initializing")
        for descriptor in descriptors:
            await self._register(descriptor)

        primary = self.preferences.primary_model
        if primary and self.registry.is_ready(primary):
            self.current_model = primary
        else:
            self.current_model = self._first_ready()

        ready = [e.descriptor.id for e in self.registry.list_ready()]
        if ready:
            logger.info("AI models ready: %s (current: %s)", ", ".join(ready), self.current_model)
        else:
            logger.warning("No AI models available, running in degraded mode")

    async def _register(self, descriptor: ModelDescriptor) -> RegistryEntry | None:
        adapter = self._adapter_factory(descriptor, self.timeouts)
        if adapter is None:
            return None
        try:
            await adapter.initialize()
        except Exception as exc:
            adapter.state = "unavailable"
            logger.warning("Failed to initialize %s: %s", descriptor.name, exc)

        entry = self.registry.register(descriptor, adapter)
        if entry.ready:
            self.transactions.append(
                "info",
                descriptor.id,
                "initialize",
                response=f"Model initialized: {descriptor.name}",
                metadata={"provider": descriptor.provider, "locality": descriptor.locality},
            )
        return entry

    async def cleanup(self) -> None:
        """Dispose every adapter. Safe to call more than once."""
        for entry in self.registry.list_all():
            try:
                await entry.adapter.cleanup()
            except Exception as exc:
                logger.warning("Error cleaning up %s: %s", entry.descriptor.id, exc)
        logger.debug("Dispatcher cleaned up")

    def status(self) -> dict[str, Any]:
        ready = [e.descriptor.id for e in self.registry.list_ready()]
        return {"available": bool(ready), "current": self.current_model, "ready": ready}

    def _first_ready(self) -> str | None:
        ready = self.registry.list_ready()
        return ready[0].descriptor.id if ready else None

    # -- dispatch ----------------------------------------------------------

    def _select(self, task_type: TaskType, context: TaskContext, payload: str = "") -> RegistryEntry:
        model_id = self.policy.select(task_type, context, self.preferences, payload)
        return self.registry.get(model_id)

    async def _run(
        self,
        entry: RegistryEntry,
        request: DispatchRequest,
        call: Callable[[DispatchRequest], Awaitable[str]],
        fallback: Callable[[Exception], str],
    ) -> str:
        descriptor = entry.descriptor
        operation = request.task_type
        call_metadata = {
            "endpoint": descriptor.endpoint or "unknown",
            "provider": descriptor.provider,
            "locality": descriptor.locality,
        }
        self.transactions.append(
            "request",
            descriptor.id,
            operation,
            prompt=request.payload,
            metadata={
                **call_metadata,
                "max_tokens": request.max_tokens,
                "temperature": request.temperature,
                "context_length": len(request.context.history),
            },
        )

        start = time.monotonic()
        try:
            response = await call(request)
        except Exception as exc:
            latency_ms = int((time.monotonic() - start) * 1000)
            if isinstance(exc, BackendError):
                logger.warning("%s failed: %s", operation, exc)
            else:
                logger.exception("%s failed on %s", operation, descriptor.id)
            self.transactions.append(
                "error",
                descriptor.id,
                operation,
                error=str(exc),
                metadata={**call_metadata, "latency": latency_ms},
            )
            return fallback(exc)

        latency_ms = int((time.monotonic() - start) * 1000)
        tokens = estimate_tokens(response)
        self.transactions.append(
            "response",
            descriptor.id,
            operation,
            response=response,
            metadata={
                **call_metadata,
                "latency": latency_ms,
                "tokens": tokens,
                "tokens_per_second": round(tokens / (latency_ms / 1000), 2) if latency_ms else None,
            },
        )
        return response

    async def dispatch_chat(self, message: str, context: TaskContext | dict[str, Any] | None = None) -> str:
        """Answer a chat message; history comes from ``context.history``."""
        context = _as_context(context)
        try:
            entry = self._select("chat", context, message)
        except NoModelAvailable as exc:
            self.transactions.append("error", SYSTEM, "chat", error=str(exc))
            return CHAT_UNAVAILABLE

        request = DispatchRequest(
            task_type="chat",
            payload=message,
            context=context,
            max_tokens=self.preferences.max_tokens,
            temperature=self.preferences.temperature,
        )
        return await self._run(
            entry, request, entry.adapter.chat, lambda exc: _failure_message(entry, "chat", exc)
        )

    async def dispatch_completion(self, prompt: str, context: TaskContext | dict[str, Any] | None = None) -> str:
        context = _as_context(context)
        try:
            entry = self._select("completion", context, prompt)
        except NoModelAvailable as exc:
            self.transactions.append("error", SYSTEM, "completion", error=str(exc))
            return COMPLETION_UNAVAILABLE

        max_tokens, temperature = COMPLETION_LIMITS
        request = DispatchRequest(
            task_type="completion",
            payload=prompt,
            context=context,
            max_tokens=max_tokens,
            temperature=temperature,
            stop_sequences=list(COMPLETION_STOP_SEQUENCES),
        )
        return await self._run(
            entry, request, entry.adapter.complete, lambda exc: _failure_message(entry, "completion", exc)
        )

    async def dispatch_inline_completion(
        self,
        code: str,
        position: CursorPosition | dict[str, Any] | None = None,
        context: TaskContext | dict[str, Any] | None = None,
    ) -> str:
        """Suggest text at the cursor. Never raises; any failure yields ""."""
        try:
            position = _as_position(position)
            base = _as_context(context)
            context = replace(base, code=code, position=position, language=position.language or base.language)
            entry = self._select("inline-completion", context)
        except NoModelAvailable:
            return ""
        except Exception:
            logger.exception("Inline completion setup failed")
            return ""

        max_tokens, temperature = INLINE_LIMITS
        request = DispatchRequest(
            task_type="inline-completion",
            payload=code,
            context=context,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        # Failures are logged as error transactions, then degrade to "".
        call = partial(entry.adapter.inline_complete, raise_errors=True)
        return await self._run(entry, request, call, lambda exc: "")

    # Editor-facing names.
    chat = dispatch_chat
    complete = dispatch_completion
    inline_complete = dispatch_inline_completion

    # -- model management --------------------------------------------------

    def list_models(self) -> list[ModelDescriptor]:
        """Descriptors of ready models, in registration order."""
        return [e.descriptor for e in self.registry.list_ready()]

    def get_current_model(self) -> str | None:
        if self.current_model is not None and not self.registry.is_ready(self.current_model):
            self.current_model = self._first_ready()
        return self.current_model

    def switch_current_model(self, model_id: str) -> None:
        """Point the current model at ``model_id``.

        Raises UnknownModel if it is not registered and ready.
        """
        if not self.registry.is_ready(model_id):
            raise UnknownModel(model_id)
        previous = self.current_model
        self.current_model = model_id
        self.preferences.primary_model = model_id
        if self.settings_store is not None:
            self.settings_store.save()
        self.transactions.append(
            "info",
            model_id,
            "switch-model",
            response=f"Switched model to {self.registry.get(model_id).descriptor.name}",
            metadata={"previous": previous, "current": model_id},
        )
        logger.info("Switched to model: %s", model_id)

    def switch_model(self, model_id: str) -> bool:
        try:
            self.switch_current_model(model_id)
        except UnknownModel:
            return False
        return True

    async def add_model(self, descriptor: ModelDescriptor) -> bool:
        """Register (or replace) a model and probe it. Returns readiness.

        Initialization failures are logged, never raised.
        """
        if descriptor.id in self.registry:
            await self._dispose(self.registry.get(descriptor.id))
        entry = await self._register(descriptor)
        if entry is None:
            return False
        if entry.ready:
            logger.info("Added model: %s", descriptor.name)
            if self.current_model is None:
                self.current_model = descriptor.id
        else:
            logger.warning("Added model %s is not available", descriptor.name)
        return entry.ready

    async def remove_model(self, model_id: str) -> None:
        """Dispose and unregister a model. Raises UnknownModel if absent."""
        entry = self.registry.unregister(model_id)
        await self._dispose(entry)
        if self.current_model == model_id:
            self.current_model = self._first_ready()
        self.transactions.append("info", model_id, "remove-model", response=f"Removed model: {model_id}")
        logger.info("Removed model: %s", model_id)

    async def _dispose(self, entry: RegistryEntry) -> None:
        try:
            await entry.adapter.cleanup()
        except Exception as exc:
            logger.warning("Error cleaning up %s: %s", entry.descriptor.id, exc)

    # -- transactions ------------------------------------------------------

    def get_transactions(self) -> list[Transaction]:
        return self.transactions.list()

    def clear_transactions(self) -> None:
        self.transactions.clear()
        logger.info("Transaction log cleared")

    # -- credentials -------------------------------------------------------

    async def update_api_key(self, provider: str, api_key: str) -> list[str]:
        """Store a new credential and re-register every model of ``provider``.

        Returns the ids of the affected models that are ready afterwards.
        """
        self.ai_settings.api_keys[provider] = api_key
        if self.settings_store is not None:
            self.settings_store.save()
        logger.info("Updated %s API key (%s)", provider, redact_api_key(api_key))

        ready = []
        for entry in self.registry.list_all():
            if entry.descriptor.provider != provider:
                continue
            if await self.add_model(entry.descriptor.with_credential(api_key)):
                ready.append(entry.descriptor.id)
        return ready

    async def test_api_key(self, provider: str, api_key: str) -> bool:
        """Probe ``provider`` with ``api_key`` on a throwaway adapter.

        The registry is never touched.
        """
        descriptor = next(
            (e.descriptor for e in self.registry.list_all() if e.descriptor.provider == provider),
            None,
        )
        if descriptor is None:
            logger.warning("No %s model configured to test the API key against", provider)
            return False

        adapter = self._adapter_factory(descriptor.with_credential(api_key), self.timeouts)
        if adapter is None:
            return False
        try:
            await adapter.initialize()
            if not adapter.is_available():
                return False
            await adapter.probe()
        except BackendError as exc:
            logger.warning("%s API key test failed (%s): %s", provider, redact_api_key(api_key), exc.reason)
            return False
        finally:
            await adapter.cleanup()
        return True
