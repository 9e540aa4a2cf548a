"""Project index: symbols, embeddings and the background indexing queue."""

from codeshell.index.embedding_store import EmbeddingStore, cosine_similarity
from codeshell.index.embeddings import EmbeddingProvider
from codeshell.index.project import ProjectIndexer
from codeshell.index.queue import IndexingQueue
from codeshell.index.symbol_index import SymbolIndex
from codeshell.index.symbols import detect_language, extract_symbols

__all__ = [
    "EmbeddingProvider",
    "EmbeddingStore",
    "IndexingQueue",
    "ProjectIndexer",
    "SymbolIndex",
    "cosine_similarity",
    "detect_language",
    "extract_symbols",
]
