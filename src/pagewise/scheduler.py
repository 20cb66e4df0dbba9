"""FIFO single-flight job scheduler.

Job ids are appended to a queue and drained by one ``asyncio.Task``; at
most one job is processed at a time and jobs start in submission order.
The busy flag belongs to the scheduler alone. Finished jobs are committed
to the owner store and then evicted from live state.
"""

import asyncio
import logging
from collections import deque
from typing import Callable, Deque, List, Optional

from .content_cache import RawContentCache
from .processor import ProcessOutcome, UnitProcessor
from .schemas import JobStatus
from .state import JobStateStore
from .strategies import AnalysisStrategy, get_strategy
from .utils.errors import JobInProgress

logger = logging.getLogger(__name__)


class JobScheduler:
    """Runs queued jobs one at a time through the unit processor."""

    def __init__(
        self,
        state: JobStateStore,
        processor: UnitProcessor,
        content_cache: RawContentCache,
        owner_store,
        usage_recorder,
        strategy_factory: Callable[..., AnalysisStrategy] = get_strategy,
    ):
        self.state = state
        self.processor = processor
        self.content_cache = content_cache
        self.owner_store = owner_store
        self.usage_recorder = usage_recorder
        self.strategy_factory = strategy_factory

        self._queue: Deque[str] = deque()
        self._busy = False
        self._task: Optional[asyncio.Task] = None

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def active_job_id(self) -> Optional[str]:
        return self._queue[0] if self._busy else None

    def pending(self) -> List[str]:
        """Queued ids in order, including the active one at the head."""
        return list(self._queue)

    def submit(self, job_id: str) -> None:
        """Append a job id and make sure the drain loop is running. Never rejects."""
        self._queue.append(job_id)
        logger.info(f"[scheduler] Queued job ({len(self._queue)} in queue)", extra={"job_id": job_id})
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._drain())

    def remove(self, job_id: str) -> bool:
        """
        Drop a job that has not started yet.

        Returns:
            True if the id was queued and is now removed

        Raises:
            JobInProgress: If the job is the one being processed
        """
        if self.active_job_id == job_id:
            raise JobInProgress(f"Job {job_id} is being processed")
        try:
            self._queue.remove(job_id)
        except ValueError:
            return False
        logger.info("[scheduler] Removed queued job", extra={"job_id": job_id})
        return True

    async def wait_idle(self) -> None:
        """Wait until the queue is fully drained."""
        while self._task is not None and not self._task.done():
            await asyncio.shield(self._task)

    async def close(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    async def _drain(self) -> None:
        while self._queue:
            job_id = self._queue[0]
            self._busy = True
            try:
                await self._run(job_id)
            except Exception as e:
                logger.exception("[scheduler] Unexpected failure while running job", extra={"job_id": job_id})
                await self._fail(job_id, e)
            finally:
                self.content_cache.release(job_id)
                self._busy = False
                self._queue.popleft()

    async def _run(self, job_id: str) -> None:
        job = self.state.get(job_id)
        content = self.content_cache.get(job_id)

        await self.state.update(
            job_id, status=JobStatus.PROCESSING, progress=0, logs=["Processing started."]
        )
        logger.info(f"[scheduler] Processing {job.kind.value} job", extra={"job_id": job_id})

        if content is None:
            await self.state.update(
                job_id, status=JobStatus.ERROR, logs=["ERROR: File content not found."]
            )
            outcome = ProcessOutcome(JobStatus.ERROR)
        else:
            strategy = self.strategy_factory(job.kind, content.options)
            outcome = await self.processor.process(job_id, content, job.model, strategy)
            if outcome.status == JobStatus.COMPLETED:
                await self._record_usage(job, strategy)

        await self._commit(job_id, job.owner_id)
        logger.info(f"[scheduler] Job finished with status {outcome.status.value}", extra={"job_id": job_id})

    async def _record_usage(self, job, strategy: AnalysisStrategy) -> None:
        try:
            await self.usage_recorder.record_usage(
                job.owner_id,
                strategy.tool_name,
                job.model,
                job_id=job.id,
                source_name=job.source_name,
            )
        except Exception as e:
            logger.error(f"[scheduler] Failed to record usage: {e}", extra={"job_id": job.id})

    async def _fail(self, job_id: str, error: Exception) -> None:
        if job_id not in self.state:
            return
        job = self.state.get(job_id)
        if job.status.is_terminal:
            return
        try:
            await self.state.update(job_id, status=JobStatus.ERROR, logs=[f"FATAL ERROR: {error}"])
        except Exception as e:
            logger.error(f"[scheduler] Could not mark job as failed: {e}", extra={"job_id": job_id})
            return
        await self._commit(job_id, job.owner_id)

    async def _commit(self, job_id: str, owner_id: str) -> None:
        """Persist the terminal record, then drop the job from live state."""
        final = self.state.get(job_id)
        try:
            await self.owner_store.apply_update(owner_id, lambda data: data.upsert_job(final))
        except Exception as e:
            logger.error(f"[scheduler] Failed to commit job to owner store: {e}", extra={"job_id": job_id})
            return
        self.state.remove(job_id)


__all__ = ["JobScheduler"]
