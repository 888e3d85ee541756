"""In-process job queue feeding the match finder.

Item creation pushes a ``MatchJob`` and returns immediately; a small pool of
asyncio workers drains the queue, each job running in its own session.
Delivery is at-least-once for the lifetime of the process: a failing job is
re-queued until ``max_attempts`` and then dropped with an error log. The
finder skips pairs that already have a match, so redelivery is harmless.
"""
from __future__ import annotations

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.database import AsyncSessionLocal
from app.models.enums import ItemKind
from app.models.lost_found import FoundItem, LostItem
from app.services.match_finder import MatchFinder, MatchJob

logger = logging.getLogger(__name__)


def job_for_item(item: LostItem | FoundItem | None) -> MatchJob | None:
    kind = getattr(item, "kind", None)
    item_id = getattr(item, "id", None)
    if kind not in (ItemKind.LOST, ItemKind.FOUND) or item_id is None:
        return None
    return MatchJob(kind=kind, item_id=item_id)


class MatchQueue:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        worker_count: int = 2,
        max_attempts: int = 3,
    ) -> None:
        self._session_factory = session_factory
        self._worker_count = max(worker_count, 1)
        self._max_attempts = max(max_attempts, 1)
        self._queue: asyncio.Queue[MatchJob] = asyncio.Queue()
        self._workers: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._workers)

    def pending(self) -> int:
        return self._queue.qsize()

    def enqueue(self, job: MatchJob) -> None:
        self._queue.put_nowait(job)

    def enqueue_match_search(self, item: LostItem | FoundItem | None) -> MatchJob | None:
        """Schedule a match search for a freshly persisted item."""
        job = job_for_item(item)
        if job is None:
            logger.warning("Not enqueuing match search for unsupported item %r", item)
            return None
        self.enqueue(job)
        return job

    async def start(self) -> None:
        if self.running:
            return
        self._workers = [
            asyncio.create_task(self._worker_loop(index), name=f"match-worker-{index}")
            for index in range(self._worker_count)
        ]
        logger.info("Match queue started with %s workers", self._worker_count)

    async def stop(self) -> None:
        for task in self._workers:
            task.cancel()
        for task in self._workers:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._workers = []
        logger.info("Match queue stopped (%s jobs left unprocessed)", self._queue.qsize())

    async def join(self) -> None:
        """Wait until every queued job, retries included, has been handled."""
        await self._queue.join()

    async def process(self, job: MatchJob) -> None:
        async with self._session_factory() as db:
            await MatchFinder.run(db, job)

    async def _worker_loop(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self.process(job)
            except asyncio.CancelledError:
                raise
            except Exception:
                if job.attempt < self._max_attempts:
                    logger.warning(
                        "Match job %s for %s failed (attempt %s/%s); retrying",
                        job.kind.value,
                        job.item_id,
                        job.attempt,
                        self._max_attempts,
                        exc_info=True,
                    )
                    self._queue.put_nowait(job.retry())
                else:
                    logger.exception(
                        "Match job %s for %s failed after %s attempts; dropping",
                        job.kind.value,
                        job.item_id,
                        job.attempt,
                    )
            finally:
                self._queue.task_done()


_match_queue: MatchQueue | None = None


def get_match_queue() -> MatchQueue:
    """FastAPI dependency returning the process-wide queue."""
    global _match_queue
    if _match_queue is None:
        _match_queue = MatchQueue(
            AsyncSessionLocal,
            worker_count=settings.MATCH_WORKER_COUNT,
            max_attempts=settings.MATCH_JOB_MAX_ATTEMPTS,
        )
    return _match_queue
