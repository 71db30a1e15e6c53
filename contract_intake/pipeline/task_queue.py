import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Set

from contract_intake.core.config import settings

logger = logging.getLogger(__name__)

Handler = Callable[[str], Awaitable[None]]

# Tells a worker to exit once it is idle
_STOP = object()


class AnalysisTaskQueue:
    """In-process queue of analysis ids drained by a fixed set of workers.

    The queue only carries ids; the analysis record store stays the source of
    truth. Ids enqueued before ``start()`` are held back until the workers run.
    An id that is queued or being handled is not queued again.
    """

    def __init__(self, handler: Handler, workers: Optional[int] = None):
        """Initialize the task queue.

        Args:
            handler: Coroutine function called with each analysis id
            workers: Number of worker tasks, defaults to settings.ANALYSIS_WORKERS
        """
        self.handler = handler
        self.workers = max(1, workers or settings.ANALYSIS_WORKERS)
        self._queue: Optional[asyncio.Queue] = None
        self._tasks: List[asyncio.Task] = []
        self._backlog: List[str] = []
        self._active: Set[str] = set()

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    @property
    def active_count(self) -> int:
        """Number of ids queued, held back or being handled."""
        return len(self._active)

    def enqueue(self, analysis_id: str) -> bool:
        """Queue an analysis id.

        Returns:
            False when the id is already queued or being handled
        """
        if analysis_id in self._active:
            logger.debug(f"Analysis {analysis_id} already queued, ignoring")
            return False
        self._active.add(analysis_id)

        if self._queue is None:
            self._backlog.append(analysis_id)
        else:
            self._queue.put_nowait(analysis_id)
        return True

    async def start(self) -> None:
        if self.running:
            return

        self._queue = asyncio.Queue()
        for analysis_id in self._backlog:
            self._queue.put_nowait(analysis_id)
        self._backlog = []

        self._tasks = [
            asyncio.create_task(self._worker(index, self._queue), name=f"analysis-worker-{index}")
            for index in range(self.workers)
        ]
        logger.info(f"Started {self.workers} analysis workers")

    async def join(self) -> None:
        """Wait until every queued id has been handled."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        """Stop the workers after their current analysis.

        Ids still waiting in the queue are held back for the next ``start()``;
        their records stay PENDING in the record store.
        """
        queue, self._queue = self._queue, None
        if queue is None:
            return

        while not queue.empty():
            self._backlog.append(queue.get_nowait())
            queue.task_done()

        for _ in self._tasks:
            queue.put_nowait(_STOP)
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Stopped analysis workers")

    async def _worker(self, index: int, queue: asyncio.Queue) -> None:
        while True:
            analysis_id = await queue.get()
            if analysis_id is _STOP:
                queue.task_done()
                return
            try:
                await self.handler(analysis_id)
            except Exception as e:
                logger.error(f"Worker {index} failed on analysis {analysis_id}: {str(e)}")
            finally:
                self._active.discard(analysis_id)
                queue.task_done()
