"""SQLite-backed implementations of the index repository protocols."""

from __future__ import annotations

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, selectinload, sessionmaker

from codeshell.core.models import EmbeddingRecord, FileIndexEntry, Symbol
from codeshell.db.engine import session_scope
from codeshell.db.tables import CodeSymbolRow, EmbeddingRow, FileIndexRow


def _symbol(row: CodeSymbolRow) -> Symbol:
    return Symbol(
        id=row.id,
        name=row.name,
        kind=row.type,  # type: ignore[arg-type]
        file_path=row.file_path,
        start_line=row.start_line,
        end_line=row.end_line,
        signature=row.signature,
        language=row.language,
        documentation=row.documentation,
    )


def _record(row: EmbeddingRow) -> EmbeddingRecord:
    return EmbeddingRecord(
        id=row.id,
        file_path=row.file_path,
        content=row.content,
        embedding=row.vector,
        language=row.language,
        start_line=row.start_line,
        end_line=row.end_line,
        symbol_type=row.symbol_type,
        created_at=row.created_at,
        source=row.source,
    )


class SqlFileIndexRepository:
    """file_index + code_symbols tables. ``put`` replaces a file in one transaction."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory

    def get(self, file_path: str) -> FileIndexEntry | None:
        with session_scope(self.session_factory) as session:
            row = session.scalars(
                select(FileIndexRow)
                .where(FileIndexRow.file_path == file_path)
                .options(selectinload(FileIndexRow.symbols))
            ).first()
            if row is None:
                return None
            return FileIndexEntry(
                file_path=row.file_path,
                content=row.content,
                content_hash=row.hash,
                language=row.language,
                last_modified=row.last_modified,
                symbols=[_symbol(s) for s in row.symbols],
            )

    def put(self, entry: FileIndexEntry) -> None:
        with session_scope(self.session_factory) as session:
            session.execute(delete(CodeSymbolRow).where(CodeSymbolRow.file_path == entry.file_path))
            row = session.get(FileIndexRow, entry.file_path)
            if row is None:
                row = FileIndexRow(file_path=entry.file_path)
                session.add(row)
            row.content = entry.content
            row.hash = entry.content_hash
            row.language = entry.language
            row.last_modified = entry.last_modified
            session.flush()
            session.add_all(
                CodeSymbolRow(
                    id=s.id,
                    name=s.name,
                    type=s.kind,
                    file_path=entry.file_path,
                    start_line=s.start_line,
                    end_line=s.end_line,
                    signature=s.signature,
                    documentation=s.documentation,
                    language=s.language,
                )
                for s in entry.symbols
            )

    def delete(self, file_path: str) -> bool:
        with session_scope(self.session_factory) as session:
            row = session.get(FileIndexRow, file_path)
            if row is None:
                return False
            session.delete(row)
            return True

    def symbols(self) -> list[Symbol]:
        with session_scope(self.session_factory) as session:
            rows = session.scalars(select(CodeSymbolRow).order_by(CodeSymbolRow.file_path, CodeSymbolRow.start_line))
            return [_symbol(row) for row in rows]

    def file_paths(self) -> list[str]:
        with session_scope(self.session_factory) as session:
            return list(session.scalars(select(FileIndexRow.file_path).order_by(FileIndexRow.file_path)))


class SqlEmbeddingRepository:
    """embeddings table; vectors as little-endian float64 blobs."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory

    def add(self, record: EmbeddingRecord) -> None:
        with session_scope(self.session_factory) as session:
            row = session.get(EmbeddingRow, record.id)
            if row is None:
                row = EmbeddingRow(id=record.id)
                session.add(row)
            row.file_path = record.file_path
            row.content = record.content
            row.vector = record.embedding
            row.language = record.language
            row.symbol_type = record.symbol_type
            row.start_line = record.start_line
            row.end_line = record.end_line
            row.created_at = record.created_at
            row.source = record.source

    def get(self, record_id: str) -> EmbeddingRecord | None:
        with session_scope(self.session_factory) as session:
            row = session.get(EmbeddingRow, record_id)
            return _record(row) if row is not None else None

    def find_at(self, file_path: str, start_line: int, end_line: int) -> EmbeddingRecord | None:
        with session_scope(self.session_factory) as session:
            row = session.scalars(
                select(EmbeddingRow)
                .where(
                    EmbeddingRow.file_path == file_path,
                    EmbeddingRow.start_line == start_line,
                    EmbeddingRow.end_line == end_line,
                )
                .order_by(EmbeddingRow.id)
            ).first()
            return _record(row) if row is not None else None

    def all(self) -> list[EmbeddingRecord]:
        with session_scope(self.session_factory) as session:
            return [_record(row) for row in session.scalars(select(EmbeddingRow))]

    def delete_for_file(self, file_path: str) -> int:
        with session_scope(self.session_factory) as session:
            result = session.execute(delete(EmbeddingRow).where(EmbeddingRow.file_path == file_path))
            return result.rowcount or 0

    def count(self) -> int:
        with session_scope(self.session_factory) as session:
            return session.scalar(select(func.count()).select_from(EmbeddingRow)) or 0
