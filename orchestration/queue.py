"""BackgroundJobQueue - hands jobs to the JobRunner off the request path."""

import asyncio
import logging

from .models import JobResult
from .runner import JobRunner
from .workflow import Job

logger = logging.getLogger(__name__)


class BackgroundJobQueue:
    """
    In-process queue of background jobs.

    A dispatcher task takes jobs off an asyncio.Queue and runs each one
    as its own task, so a job sleeping between retries never blocks the
    others. Jobs still queued or running at shutdown are cancelled and
    logged.
    """

    def __init__(self, runner: JobRunner) -> None:
        self._runner = runner
        self._queue: asyncio.Queue[Job] = asyncio.Queue()
        self._running: set[asyncio.Task] = set()
        self._dispatcher: asyncio.Task | None = None
        self.results: list[JobResult] = []

    @property
    def is_running(self) -> bool:
        return self._dispatcher is not None and not self._dispatcher.done()

    def start(self) -> None:
        """Start the dispatcher (idempotent)."""
        if self.is_running:
            return
        self._dispatcher = asyncio.create_task(self._dispatch(), name="background-job-dispatcher")
        logger.info("Background job queue started")

    async def stop(self) -> None:
        """Cancel the dispatcher and any in-flight jobs."""
        if self._dispatcher is not None:
            self._dispatcher.cancel()
            await asyncio.gather(self._dispatcher, return_exceptions=True)
            self._dispatcher = None

        pending = self._queue.qsize() + len(self._running)
        if pending:
            logger.error(f"Stopping background job queue with {pending} unfinished job(s)")
        for task in list(self._running):
            task.cancel()
        await asyncio.gather(*self._running, return_exceptions=True)
        self._running.clear()
        logger.info("Background job queue stopped")

    async def enqueue(self, job: Job) -> None:
        """Queue a job, starting the dispatcher on first use."""
        self.start()
        await self._queue.put(job)
        logger.info(f"Queued background job {job.name} (order={job.order_number})")

    async def drain(self) -> None:
        """Wait until every queued job, including ones queued by jobs, has finished."""
        while True:
            await self._queue.join()
            if not self._running:
                if self._queue.empty():
                    return
                continue
            await asyncio.gather(*list(self._running), return_exceptions=True)

    async def _dispatch(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                task = asyncio.create_task(self._run(job), name=f"job:{job.name}")
                self._running.add(task)
                task.add_done_callback(self._running.discard)
            finally:
                self._queue.task_done()

    async def _run(self, job: Job) -> JobResult:
        result = await self._runner.run(job)
        self.results.append(result)
        return result
