"""On-disk storage for the project index (SQLite via SQLAlchemy)."""

from codeshell.db.engine import get_index_engine, init_index_db, reset_engines, session_scope
from codeshell.db.repositories import SqlEmbeddingRepository, SqlFileIndexRepository
from codeshell.db.tables import CodeSymbolRow, EmbeddingRow, FileIndexRow, IndexBase

__all__ = [
    "CodeSymbolRow",
    "EmbeddingRow",
    "FileIndexRow",
    "IndexBase",
    "SqlEmbeddingRepository",
    "SqlFileIndexRepository",
    "get_index_engine",
    "init_index_db",
    "reset_engines",
    "session_scope",
]
