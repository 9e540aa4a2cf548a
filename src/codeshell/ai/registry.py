"""Model registry: configured adapters and their capability metadata."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from codeshell.ai.adapters.base import ModelAdapter
from codeshell.core.errors import UnknownModel
from codeshell.core.models import ModelDescriptor

logger = logging.getLogger(__name__)


@dataclass
class RegistryEntry:
    descriptor: ModelDescriptor
    adapter: ModelAdapter

    @property
    def ready(self) -> bool:
        return self.adapter.is_available()


class ModelRegistry:
    """Maps model id -> (descriptor, adapter), preserving registration order.

    Re-registering an existing id replaces its entry in place, so a
    credential rotation does not move the model in the tie-break order.
    """

    def __init__(self) -> None:
        self._entries: dict[str, RegistryEntry] = {}
        self._lock = threading.Lock()

    def register(self, descriptor: ModelDescriptor, adapter: ModelAdapter) -> RegistryEntry:
        entry = RegistryEntry(descriptor=descriptor, adapter=adapter)
        with self._lock:
            replaced = descriptor.id in self._entries
            self._entries[descriptor.id] = entry
        logger.debug("%s model %s", "Replaced" if replaced else "Registered", descriptor.id)
        return entry

    def unregister(self, model_id: str) -> RegistryEntry:
        with self._lock:
            entry = self._entries.pop(model_id, None)
        if entry is None:
            raise UnknownModel(model_id)
        logger.debug("Unregistered model %s", model_id)
        return entry

    def get(self, model_id: str) -> RegistryEntry:
        entry = self._entries.get(model_id)
        if entry is None:
            raise UnknownModel(model_id)
        return entry

    def is_ready(self, model_id: str) -> bool:
        entry = self._entries.get(model_id)
        return entry is not None and entry.ready

    def list_all(self) -> list[RegistryEntry]:
        with self._lock:
            return list(self._entries.values())

    def list_ready(self) -> list[RegistryEntry]:
        """Ready entries in registration order."""
        return [entry for entry in self.list_all() if entry.ready]

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
