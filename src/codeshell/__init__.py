"""Codeshell - AI model routing and code indexing for a desktop code editor.

Usage:
    from codeshell import AppContext

    async with AppContext() as app:
        reply = await app.dispatcher.chat("Explain this trigger", {"language": "apex"})
        app.queue.submit("src/classes/Account.cls")
        await app.queue.join()
        hits = app.symbols.search("Account")
"""

from codeshell.ai.dispatcher import ModelDispatcher
from codeshell.ai.registry import ModelRegistry
from codeshell.ai.selection import SelectionPolicy
from codeshell.ai.transactions import TransactionLog
from codeshell.context import AppContext
from codeshell.core.models import ModelDescriptor, Symbol, TaskContext, Transaction
from codeshell.index.embedding_store import EmbeddingStore, cosine_similarity
from codeshell.index.symbol_index import SymbolIndex

__version__ = "0.1.0"

__all__ = [
    "AppContext",
    "EmbeddingStore",
    "ModelDescriptor",
    "ModelDispatcher",
    "ModelRegistry",
    "SelectionPolicy",
    "Symbol",
    "SymbolIndex",
    "TaskContext",
    "Transaction",
    "TransactionLog",
    "cosine_similarity",
]
