"""Pipeline facade: wires the stores, processor and scheduler together."""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from .config import settings
from .content_cache import PendingContent, RawContentCache
from .processor import UnitProcessor
from .retry import InferenceCall, RetryingInvoker
from .scheduler import JobScheduler
from .schemas import Job, JobStatus, JobSubmission
from .state import JobStateStore, Observer
from .utils.errors import JobInProgress, JobNotFound, UploadTooLarge

logger = logging.getLogger(__name__)


class PipelineService:
    """Entry point used by the API to submit, look up and delete jobs."""

    def __init__(
        self,
        state: JobStateStore,
        content_cache: RawContentCache,
        scheduler: JobScheduler,
        owner_store,
        default_model: str = settings.DEFAULT_MODEL,
        max_upload_size: int = settings.MAX_UPLOAD_SIZE,
    ):
        self.state = state
        self.content_cache = content_cache
        self.scheduler = scheduler
        self.owner_store = owner_store
        self.default_model = default_model
        self.max_upload_size = max_upload_size

    @classmethod
    def build(
        cls,
        inference_client: InferenceCall,
        owner_store,
        usage_recorder,
        max_attempts: int = settings.MAX_ATTEMPTS,
        retry_base_delay: float = settings.retry_base_delay,
        inter_chunk_delay: float = settings.inter_chunk_delay,
        content_cache_max_bytes: int = settings.CONTENT_CACHE_MAX_BYTES,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        **kwargs,
    ) -> "PipelineService":
        """Assemble a service from its external collaborators."""
        state = JobStateStore()
        content_cache = RawContentCache(content_cache_max_bytes)
        invoker = RetryingInvoker(
            inference_client, max_attempts=max_attempts, base_delay=retry_base_delay, sleep=sleep
        )
        processor = UnitProcessor(state, invoker, inter_chunk_delay=inter_chunk_delay, sleep=sleep)
        scheduler = JobScheduler(state, processor, content_cache, owner_store, usage_recorder)
        return cls(state, content_cache, scheduler, owner_store, **kwargs)

    async def submit(
        self,
        submission: JobSubmission,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> Job:
        """
        Accept an upload and queue a job for it.

        Args:
            submission: Owner, kind, file name and kind options
            data: Raw upload bytes
            content_type: MIME type reported by the client

        Returns:
            The queued job

        Raises:
            UploadTooLarge: If the upload exceeds the size limit
            ContentCacheFull: If the raw content budget is exhausted
        """
        if len(data) > self.max_upload_size:
            raise UploadTooLarge(
                f"File too large: {len(data)} bytes (limit {self.max_upload_size} bytes)"
            )

        job = Job(
            owner_id=submission.owner_id,
            kind=submission.kind,
            model=submission.model or self.default_model,
            source_name=submission.source_name,
        )
        content = PendingContent(
            data=data,
            filename=submission.source_name,
            content_type=content_type,
            options={
                "rules_text": submission.rules_text,
                "recommend_journals": submission.recommend_journals,
            },
        )

        self.content_cache.put(job.id, content)
        self.state.create(job)
        try:
            await self.owner_store.apply_update(job.owner_id, lambda owner_data: owner_data.upsert_job(job))
        except Exception:
            self.content_cache.release(job.id)
            self.state.remove(job.id)
            raise

        self.scheduler.submit(job.id)
        logger.info(
            f"[service] Submitted {job.kind.value} job for {job.source_name}",
            extra={"job_id": job.id},
        )
        return job

    async def get_job(self, owner_id: str, job_id: str) -> Job:
        """Live state first, then the owner's stored record.

        Raises:
            JobNotFound: If the owner has no job with that id
        """
        if job_id in self.state:
            job = self.state.get(job_id)
        else:
            job = (await self.owner_store.get(owner_id)).find_job(job_id)

        if job is None or job.owner_id != owner_id:
            raise JobNotFound(f"Job {job_id} not found")
        return job

    async def list_jobs(self, owner_id: str) -> List[Job]:
        stored = (await self.owner_store.get(owner_id)).jobs
        return [self.state.get(job.id) if job.id in self.state else job for job in stored]

    async def delete_job(self, owner_id: str, job_id: str) -> None:
        """
        Delete a queued or finished job.

        Raises:
            JobNotFound: If the owner has no job with that id
            JobInProgress: If the job is currently processing
        """
        job = await self.get_job(owner_id, job_id)
        if job.status == JobStatus.PROCESSING:
            raise JobInProgress(f"Job {job_id} is being processed")

        if job.status == JobStatus.QUEUED:
            self.scheduler.remove(job_id)
            self.content_cache.release(job_id)

        self.state.remove(job_id)
        await self.owner_store.apply_update(owner_id, lambda owner_data: owner_data.remove_job(job_id))
        logger.info("[service] Deleted job", extra={"job_id": job_id})

    def subscribe(self, job_id: str, observer: Observer) -> Callable[[], None]:
        return self.state.subscribe(job_id, observer)

    async def close(self) -> None:
        await self.scheduler.close()


__all__ = ["PipelineService"]
