"""Index database models.

- FileIndexRow: one indexed file (content, hash, language)
- CodeSymbolRow: symbols owned by a file; deleted with it
- EmbeddingRow: one vector per chunk, stored as little-endian float64
"""

import struct
from typing import Any, ClassVar

from sqlalchemy import Float, ForeignKey, Index, Integer, LargeBinary, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class IndexBase(DeclarativeBase):
    """Base class for index models."""

    type_annotation_map: ClassVar[dict[type, Any]] = {}


class FileIndexRow(IndexBase):
    __tablename__ = "file_index"

    file_path: Mapped[str] = mapped_column(String(1024), primary_key=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    language: Mapped[str] = mapped_column(String(32), nullable=False)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)  # SHA-256
    last_modified: Mapped[float] = mapped_column(Float, nullable=False)

    symbols: Mapped[list["CodeSymbolRow"]] = relationship(
        "CodeSymbolRow",
        back_populates="file",
        cascade="all, delete-orphan",
        order_by="CodeSymbolRow.start_line",
    )


class CodeSymbolRow(IndexBase):
    __tablename__ = "code_symbols"

    id: Mapped[str] = mapped_column(String(1200), primary_key=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    file_path: Mapped[str] = mapped_column(
        String(1024), ForeignKey("file_index.file_path", ondelete="CASCADE"), nullable=False
    )
    start_line: Mapped[int] = mapped_column(Integer, nullable=False)
    end_line: Mapped[int] = mapped_column(Integer, nullable=False)
    signature: Mapped[str] = mapped_column(Text, nullable=False, default="")
    documentation: Mapped[str | None] = mapped_column(Text, nullable=True)
    language: Mapped[str] = mapped_column(String(32), nullable=False)

    file: Mapped[FileIndexRow] = relationship("FileIndexRow", back_populates="symbols")

    __table_args__ = (
        Index("idx_symbols_name", "name"),
        Index("idx_symbols_type", "type"),
        Index("idx_symbols_file", "file_path"),
    )


class EmbeddingRow(IndexBase):
    __tablename__ = "embeddings"

    id: Mapped[str] = mapped_column(String(1200), primary_key=True)
    file_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    embedding: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    language: Mapped[str] = mapped_column(String(32), nullable=False)
    symbol_type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    start_line: Mapped[int] = mapped_column(Integer, nullable=False)
    end_line: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[float] = mapped_column(Float, nullable=False)
    source: Mapped[str] = mapped_column(String(160), nullable=False, default="")

    @property
    def vector(self) -> list[float]:
        """Get the unpacked embedding vector."""
        count = len(self.embedding) // 8  # 8 bytes per float64
        return list(struct.unpack(f"<{count}d", self.embedding))

    @vector.setter
    def vector(self, value: list[float]) -> None:
        """Set the packed embedding vector."""
        self.embedding = struct.pack(f"<{len(value)}d", *value)

    __table_args__ = (
        Index("idx_embeddings_file", "file_path"),
        Index("idx_embeddings_language", "language"),
        Index("idx_embeddings_location", "file_path", "start_line", "end_line"),
    )
