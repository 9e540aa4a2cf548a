"""Background indexing queue.

Editors submit a job after a save and carry on; the index becomes
eventually consistent, so a search right after a save may still see the
previous content.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from codeshell.core.errors import IndexingFailure
from codeshell.index.project import ProjectIndexer

logger = logging.getLogger(__name__)


@dataclass
class IndexJob:
    file_path: str
    content: str | None = None  # None: read the file from disk
    remove: bool = False


class IndexingQueue:
    """Single worker task draining indexing jobs in submission order.

    A failing job is logged and recorded in ``failures``; the worker moves
    on to the next one.
    """

    def __init__(self, indexer: ProjectIndexer):
        self.indexer = indexer
        self.failures: list[IndexingFailure] = []
        self.completed = 0
        self._queue: asyncio.Queue[IndexJob] | None = None
        self._worker: asyncio.Task | None = None

    def start(self) -> None:
        """Start the worker on the running event loop."""
        if self._worker is not None and not self._worker.done():
            return
        if self._queue is None:
            self._queue = asyncio.Queue()
        self._worker = asyncio.get_running_loop().create_task(self._run(), name="codeshell-indexer")

    def submit(self, file_path: str, content: str | None = None) -> None:
        """Enqueue a file for indexing without waiting for it."""
        self._put(IndexJob(file_path=file_path, content=content))

    def submit_removal(self, file_path: str) -> None:
        self._put(IndexJob(file_path=file_path, remove=True))

    def _put(self, job: IndexJob) -> None:
        self.start()
        assert self._queue is not None
        self._queue.put_nowait(job)

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    async def join(self) -> None:
        """Wait until every submitted job has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        """Finish outstanding jobs, then stop the worker."""
        if self._worker is None:
            return
        await self.join()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None

    async def _run(self) -> None:
        assert self._queue is not None
        while True:
            job = await self._queue.get()
            try:
                await self._process(job)
                self.completed += 1
            except IndexingFailure as exc:
                self.failures.append(exc)
                logger.warning("%s", exc)
            except Exception as exc:
                failure = IndexingFailure(job.file_path, str(exc))
                self.failures.append(failure)
                logger.exception("Unexpected error indexing %s", job.file_path)
            finally:
                self._queue.task_done()

    async def _process(self, job: IndexJob) -> None:
        if job.remove:
            await self.indexer.remove_file(job.file_path)
        elif job.content is None:
            await self.indexer.index_path(job.file_path)
        else:
            await self.indexer.index_file(job.file_path, job.content)
