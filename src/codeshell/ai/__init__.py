"""Model routing: adapters, registry, selection, dispatch and the transaction log."""

from codeshell.ai.catalog import DEFAULT_MODELS, build_catalog
from codeshell.ai.dispatcher import ModelDispatcher
from codeshell.ai.registry import ModelRegistry, RegistryEntry
from codeshell.ai.selection import SelectionPolicy
from codeshell.ai.transactions import TransactionLog

__all__ = [
    "DEFAULT_MODELS",
    "ModelDispatcher",
    "ModelRegistry",
    "RegistryEntry",
    "SelectionPolicy",
    "TransactionLog",
    "build_catalog",
]
