"""Progress tracking via Redis Pub/Sub."""

import json
import logging
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from .schemas import Job

logger = logging.getLogger(__name__)


def progress_channel(job_id: str) -> str:
    return f"progress:{job_id}"


def progress_message(job: Job) -> str:
    """JSON snapshot sent to subscribers; results are left out."""
    return json.dumps(
        {
            "job_id": job.id,
            "status": job.status.value,
            "progress": job.progress,
            "message": job.logs[-1] if job.logs else "",
        }
    )


class ProgressPublisher:
    """Publish job state changes to Redis.

    Register with ``JobStateStore.subscribe_all`` to forward every change.
    """

    def __init__(self, redis_client: redis.Redis):
        self.redis_client = redis_client

    @classmethod
    def from_url(cls, url: Optional[str] = None) -> "ProgressPublisher":
        from .config import settings

        return cls(redis.from_url(url or settings.REDIS_URL, decode_responses=True))

    async def publish_progress(self, job: Job):
        """Publish one job snapshot to ``progress:{job_id}``."""
        try:
            await self.redis_client.publish(progress_channel(job.id), progress_message(job))
        except RedisError as e:
            logger.warning(f"[progress] Failed to publish progress: {e}", extra={"job_id": job.id})

    async def __call__(self, job: Job):
        await self.publish_progress(job)

    async def aclose(self):
        """Close the Redis connection pool."""
        await self.redis_client.aclose()


__all__ = ["ProgressPublisher", "progress_channel", "progress_message"]
