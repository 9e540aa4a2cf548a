"""Bounded, append-only log of dispatch transactions."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections import deque
from pathlib import Path
from typing import Any

from codeshell.core.logging import JsonlWriter
from codeshell.core.models import Transaction, TransactionKind

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100


def _transaction_id() -> str:
    return f"tx-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


class TransactionLog:
    """Ring buffer of the most recent ``capacity`` transactions.

    Appends go through a single insertion point guarded by a lock, so
    concurrent dispatches each land as one whole entry. When full, the
    oldest entry is evicted. Entries are optionally mirrored to a JSONL
    file that is never truncated by eviction or :meth:`clear`.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, jsonl_path: Path | None = None):
        if capacity < 1:
            raise ValueError("Transaction log capacity must be at least 1")
        self.capacity = capacity
        self._entries: deque[Transaction] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._writer = JsonlWriter(jsonl_path) if jsonl_path is not None else None

    def append(
        self,
        kind: TransactionKind,
        model: str,
        operation: str,
        *,
        prompt: str | None = None,
        response: str | None = None,
        error: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Transaction:
        """Record one transaction and return it."""
        transaction = Transaction(
            id=_transaction_id(),
            timestamp=time.time(),
            kind=kind,
            model=model,
            operation=operation,
            prompt=prompt,
            response=response,
            error=error,
            metadata=dict(metadata or {}),
        )
        with self._lock:
            self._entries.append(transaction)
        if self._writer is not None:
            self._writer.write(transaction.to_dict())
        logger.debug("Transaction %s: %s %s/%s", transaction.id, kind, model, operation)
        return transaction

    def list(self) -> list[Transaction]:
        """Snapshot of the retained transactions, oldest first."""
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
