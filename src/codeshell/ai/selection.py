"""Capability-based model selection."""

from __future__ import annotations

import logging

from codeshell.ai.registry import ModelRegistry, RegistryEntry
from codeshell.core.config import Preferences
from codeshell.core.errors import NoModelAvailable
from codeshell.core.models import ModelDescriptor, TaskContext, estimate_tokens

logger = logging.getLogger(__name__)

# Tags that make a model eligible for any task.
FALLBACK_SPECIALTIES = frozenset({"general-coding", "chat"})

# Specialty tags accepted for each task type.
TASK_SPECIALTIES: dict[str, frozenset[str]] = {
    "completion": frozenset({"completion", "code-completion"}),
    "inline-completion": frozenset({"inline-completion"}),
    "chat": frozenset({"chat"}),
}

LATENCY_SENSITIVE_TASKS = frozenset({"inline-completion", "chat"})

# Context below this many estimated tokens fits every model.
DEFAULT_CONTEXT_THRESHOLD = 2048


def is_fast(descriptor: ModelDescriptor) -> bool:
    """Low latency, or a local medium-latency model (no network round trip)."""
    return descriptor.latency == "low" or (descriptor.is_local and descriptor.latency == "medium")


class SelectionPolicy:
    """Picks the adapter that serves a task.

    ``select`` reads nothing but its arguments and the registry's ready set,
    so identical inputs against an unchanged registry always give the same
    model id. Steps, in order:

    1. ready models whose specialties match the task or a fallback tag
    2. latency-sensitive tasks narrow to fast models
    3. large contexts (payload included) narrow to models whose window holds them
    4. ``prefer_local`` (default on) narrows to local models
    5. a ready ``pinned_model`` wins outright
    6. first remaining candidate in registration order

    Steps 2-4 never empty the candidate set; a filter that would is skipped.
    """

    def __init__(self, registry: ModelRegistry, context_threshold: int = DEFAULT_CONTEXT_THRESHOLD):
        self.registry = registry
        self.context_threshold = context_threshold

    def candidates(
        self,
        task_type: str,
        context: TaskContext | None = None,
        preferences: Preferences | None = None,
        payload: str = "",
    ) -> list[ModelDescriptor]:
        """Ordered candidate list after steps 1-4."""
        context = context or TaskContext()
        preferences = preferences or Preferences()
        wanted = TASK_SPECIALTIES.get(task_type, frozenset({task_type})) | FALLBACK_SPECIALTIES

        ready: list[RegistryEntry] = self.registry.list_ready()
        suitable = [e.descriptor for e in ready if e.descriptor.specialties & wanted]

        if task_type in LATENCY_SENSITIVE_TASKS:
            suitable = _narrow(suitable, is_fast)

        size = context.size_tokens() + estimate_tokens(payload)
        if size > self.context_threshold:
            suitable = _narrow(suitable, lambda d: d.context_window >= size)

        if preferences.prefer_local is not False:
            suitable = _narrow(suitable, lambda d: d.is_local)

        return suitable

    def select(
        self,
        task_type: str,
        context: TaskContext | None = None,
        preferences: Preferences | None = None,
        payload: str = "",
    ) -> str:
        """Return the id of the model that should serve ``task_type``.

        Raises NoModelAvailable if nothing is ready for the task.
        """
        preferences = preferences or Preferences()
        pinned = preferences.pinned_model
        if pinned and self.registry.is_ready(pinned):
            logger.debug("Selected pinned model %s for %s", pinned, task_type)
            return pinned

        suitable = self.candidates(task_type, context, preferences, payload)
        if not suitable:
            raise NoModelAvailable(task_type)
        logger.debug("Selected %s for %s from %d candidates", suitable[0].id, task_type, len(suitable))
        return suitable[0].id


def _narrow(candidates: list[ModelDescriptor], keep) -> list[ModelDescriptor]:
    narrowed = [d for d in candidates if keep(d)]
    return narrowed if narrowed else candidates
