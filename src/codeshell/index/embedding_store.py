"""Per-chunk vector storage with brute-force cosine search."""

from __future__ import annotations

import logging
import math
import time

from codeshell.core.errors import DimensionMismatch
from codeshell.core.models import EmbeddingRecord, SimilarityResult
from codeshell.index.embeddings import EmbeddingProvider
from codeshell.index.repository import EmbeddingRepository, InMemoryEmbeddingRepository

logger = logging.getLogger(__name__)

SIMILARITY_FLOOR = 0.7


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Compute cosine similarity between two vectors.

    Raises DimensionMismatch if the lengths differ. A zero vector has
    similarity 0.0 with everything.
    """
    if len(a) != len(b):
        raise DimensionMismatch(len(a), len(b))
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(x * x for x in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def _result(record: EmbeddingRecord, similarity: float) -> SimilarityResult:
    return SimilarityResult(
        id=record.id,
        file_path=record.file_path,
        content=record.content,
        similarity=similarity,
        language=record.language,
        start_line=record.start_line,
        end_line=record.end_line,
    )


def _rank(scored: list[tuple[float, EmbeddingRecord]], limit: int) -> list[SimilarityResult]:
    scored.sort(key=lambda item: (-item[0], item[1].id))
    return [_result(record, sim) for sim, record in scored[:limit]]


class EmbeddingStore:
    """Embeds code chunks and answers similarity queries.

    Every query scans all stored vectors; the corpus is one project.
    """

    def __init__(
        self,
        provider: EmbeddingProvider | None = None,
        repository: EmbeddingRepository | None = None,
    ):
        self.provider = provider or EmbeddingProvider()
        self.repository = repository or InMemoryEmbeddingRepository()

    async def embed_chunk(
        self,
        id: str,
        file_path: str,
        content: str,
        language: str,
        symbol_type: str | None = None,
        start_line: int = 1,
        end_line: int = 1,
    ) -> EmbeddingRecord:
        embedding, source = await self.provider.embed_with_source(content)
        record = EmbeddingRecord(
            id=id,
            file_path=file_path,
            content=content,
            embedding=embedding,
            language=language,
            start_line=start_line,
            end_line=end_line,
            symbol_type=symbol_type,
            created_at=time.time(),
            source=source,
        )
        self.repository.add(record)
        logger.debug("Embedded %s (%s:%d-%d)", id, file_path, start_line, end_line)
        return record

    @staticmethod
    def _comparable(records: list[EmbeddingRecord], source: str, dimensions: int) -> list[EmbeddingRecord]:
        """Records in the same vector space as a query from ``source``.

        Hash fallback vectors and vectors from another model are skipped;
        they are replaced the next time their file is re-indexed.
        """
        kept = [r for r in records if r.source == source and len(r.embedding) == dimensions]
        if len(kept) < len(records):
            logger.info("Skipping %d embeddings not produced by %s", len(records) - len(kept), source)
        return kept

    async def semantic_search(self, query: str, limit: int = 10) -> list[SimilarityResult]:
        """Stored chunks ranked by similarity to ``query``, best first."""
        query_embedding, source = await self.provider.embed_with_source(query)
        scored = [
            (cosine_similarity(query_embedding, record.embedding), record)
            for record in self._comparable(self.repository.all(), source, len(query_embedding))
        ]
        return _rank(scored, limit)

    def find_similar_code(
        self,
        file_path: str,
        start_line: int,
        end_line: int,
        limit: int = 5,
    ) -> list[SimilarityResult]:
        """Chunks similar to the one stored at exactly this location.

        Returns [] when that location has no embedding yet. Only matches
        above the relevance floor are returned.
        """
        target = self.repository.find_at(file_path, start_line, end_line)
        if target is None:
            return []

        scored = []
        for record in self._comparable(self.repository.all(), target.source, len(target.embedding)):
            if record.id == target.id:
                continue
            similarity = cosine_similarity(target.embedding, record.embedding)
            if similarity > SIMILARITY_FLOOR:
                scored.append((similarity, record))
        return _rank(scored, limit)

    def remove_embeddings_for_file(self, file_path: str) -> int:
        removed = self.repository.delete_for_file(file_path)
        if removed:
            logger.info("Removed %d embeddings for %s", removed, file_path)
        return removed

    def count(self) -> int:
        return self.repository.count()
