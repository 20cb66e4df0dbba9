"""Live job state with per-job change notifications.

Logs are append-only; every other field is last-write-wins. Once a job is
``completed`` or ``error`` it no longer accepts updates.
"""

import inspect
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Union

from .schemas import Job, JobStatus
from .utils.errors import JobAlreadyTerminal, JobNotFound

logger = logging.getLogger(__name__)

Observer = Callable[[Job], Union[None, Awaitable[None]]]

UPDATABLE_FIELDS = {"status", "progress", "logs", "result"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStateStore:
    """In-process store of job snapshots keyed by job id."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock
        self._jobs: Dict[str, Job] = {}
        self._observers: Dict[str, List[Observer]] = defaultdict(list)
        self._global_observers: List[Observer] = []

    def format_log_line(self, message: str) -> str:
        return f"[{self._clock().strftime('%H:%M:%S')}] {message}"

    def create(self, job: Job) -> Job:
        if job.id in self._jobs:
            raise ValueError(f"Job {job.id} already exists")
        self._jobs[job.id] = job.model_copy(deep=True)
        return job.model_copy(deep=True)

    def get(self, job_id: str) -> Job:
        """Return a copy of the job.

        Raises:
            JobNotFound: If the id is unknown
        """
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFound(f"Job {job_id} not found")
        return job.model_copy(deep=True)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs

    def list_jobs(self, owner_id: Optional[str] = None) -> List[Job]:
        return [
            job.model_copy(deep=True)
            for job in self._jobs.values()
            if owner_id is None or job.owner_id == owner_id
        ]

    async def update(self, job_id: str, **changes) -> Job:
        """
        Merge changes into a job and notify its observers.

        Args:
            job_id: Target job
            **changes: Any of ``status``, ``progress``, ``result`` (replaced)
                and ``logs`` (a list of messages, timestamped and appended)

        Returns:
            Snapshot of the job after the merge

        Raises:
            JobNotFound: If the id is unknown
            JobAlreadyTerminal: If the job is already completed or failed
            ValueError: On unknown fields, out-of-range progress, or a result
                that does not match the status
        """
        current = self._jobs.get(job_id)
        if current is None:
            raise JobNotFound(f"Job {job_id} not found")
        if current.status.is_terminal:
            raise JobAlreadyTerminal(f"Job {job_id} is already {current.status.value}")

        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update job fields: {', '.join(sorted(unknown))}")

        merged = {}
        if "logs" in changes:
            merged["logs"] = current.logs + [self.format_log_line(m) for m in changes["logs"]]
        if "status" in changes:
            merged["status"] = JobStatus(changes["status"])
        if "progress" in changes:
            progress = int(changes["progress"])
            if not 0 <= progress <= 100:
                raise ValueError(f"Progress out of range: {progress}")
            merged["progress"] = progress
        if "result" in changes:
            merged["result"] = changes["result"]

        status = merged.get("status", current.status)
        result = merged.get("result", current.result)
        if (status == JobStatus.COMPLETED) != (result is not None):
            raise ValueError("A result is present if and only if the job is completed")

        merged["updated_at"] = self._clock()
        updated = current.model_copy(update=merged)
        self._jobs[job_id] = updated

        await self._notify(updated.model_copy(deep=True))
        return updated.model_copy(deep=True)

    async def append_log(self, job_id: str, message: str) -> Job:
        return await self.update(job_id, logs=[message])

    def remove(self, job_id: str) -> Optional[Job]:
        self._observers.pop(job_id, None)
        return self._jobs.pop(job_id, None)

    def subscribe(self, job_id: str, observer: Observer) -> Callable[[], None]:
        """Observe changes to one job. Returns an unsubscribe callable."""
        self._observers[job_id].append(observer)

        def unsubscribe() -> None:
            observers = self._observers.get(job_id)
            if observers and observer in observers:
                observers.remove(observer)
                if not observers:
                    del self._observers[job_id]

        return unsubscribe

    def subscribe_all(self, observer: Observer) -> Callable[[], None]:
        """Observe changes to every job."""
        self._global_observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._global_observers:
                self._global_observers.remove(observer)

        return unsubscribe

    async def _notify(self, snapshot: Job) -> None:
        observers = list(self._observers.get(snapshot.id, ())) + list(self._global_observers)
        for observer in observers:
            try:
                outcome = observer(snapshot)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception(f"[state] Observer failed for job {snapshot.id}")


__all__ = ["JobStateStore", "Observer", "UPDATABLE_FIELDS"]
