"""Process-scoped application context.

Builds the transaction log, registry, selection policy, dispatcher and the
project index once, and tears them down together::

    async with AppContext() as app:
        reply = await app.dispatcher.dispatch_chat("hello")
"""

from __future__ import annotations

import logging

from codeshell.ai.adapters import AdapterTimeouts
from codeshell.ai.catalog import build_catalog
from codeshell.ai.dispatcher import ModelDispatcher
from codeshell.ai.registry import ModelRegistry
from codeshell.ai.selection import SelectionPolicy
from codeshell.ai.transactions import TransactionLog
from codeshell.config import Settings, get_settings
from codeshell.core.config import EmbeddingConfig, SettingsStore
from codeshell.core.models import ModelDescriptor
from codeshell.index.embedding_store import EmbeddingStore
from codeshell.index.embeddings import EmbeddingProvider
from codeshell.index.project import ProjectIndexer
from codeshell.index.queue import IndexingQueue
from codeshell.index.repository import (
    EmbeddingRepository,
    FileIndexRepository,
    InMemoryEmbeddingRepository,
    InMemoryFileIndexRepository,
)
from codeshell.index.symbol_index import SymbolIndex

logger = logging.getLogger(__name__)


class AppContext:
    """Owns every long-lived component of one editor session."""

    def __init__(
        self,
        settings: Settings | None = None,
        models: list[ModelDescriptor] | None = None,
        embedding_provider: EmbeddingProvider | None = None,
    ):
        self.settings = settings or get_settings()
        self.settings_store = SettingsStore(self.settings.settings_file)
        self.ai_settings = self.settings_store.load()

        self.transactions = TransactionLog(
            capacity=self.settings.transaction_capacity,
            jsonl_path=self.settings.transaction_log_file,
        )
        self.registry = ModelRegistry()
        self.policy = SelectionPolicy(self.registry)
        self.dispatcher = ModelDispatcher(
            self.registry,
            self.transactions,
            policy=self.policy,
            ai_settings=self.ai_settings,
            settings_store=self.settings_store,
            timeouts=AdapterTimeouts(
                inline=self.settings.inline_timeout,
                completion=self.settings.completion_timeout,
                chat=self.settings.chat_timeout,
            ),
        )
        self._models = models

        file_repo, embedding_repo = self._repositories()
        self.embedding_provider = embedding_provider or EmbeddingProvider(
            EmbeddingConfig(
                provider=self.settings.embedding_provider,
                service_url=self.settings.embedding_service_url,
            )
        )
        self.symbols = SymbolIndex(file_repo)
        self.embeddings = EmbeddingStore(self.embedding_provider, embedding_repo)
        self.indexer = ProjectIndexer(self.symbols, self.embeddings)
        self.queue = IndexingQueue(self.indexer)
        self._started = False

    def _repositories(self) -> tuple[FileIndexRepository, EmbeddingRepository]:
        if not self.settings.persist_index:
            return InMemoryFileIndexRepository(), InMemoryEmbeddingRepository()

        from codeshell.db.engine import init_index_db
        from codeshell.db.repositories import SqlEmbeddingRepository, SqlFileIndexRepository

        factory = init_index_db(self.settings)
        return SqlFileIndexRepository(factory), SqlEmbeddingRepository(factory)

    async def start(self) -> None:
        """Probe every configured model. Never fails on backend errors."""
        if self._started:
            return
        models = self._models
        if models is None:
            models = build_catalog(self.ai_settings, self.settings.ollama_base_url)
        await self.dispatcher.initialize(models)
        self._started = True

    async def shutdown(self) -> None:
        """Drain the indexing queue and release every backend connection."""
        await self.queue.stop()
        await self.dispatcher.cleanup()
        await self.embedding_provider.close()
        self.transactions.close()
        self._started = False
        logger.debug("Application context shut down")

    async def __aenter__(self) -> AppContext:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.shutdown()
