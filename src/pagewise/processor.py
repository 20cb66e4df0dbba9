"""Generic unit processor: extract, chunk, analyze chunk by chunk.

Chunk failures are logged on the job and skipped; anything that goes wrong
outside a single chunk fails the whole job. ``process`` always ends with the
job in a terminal state and never raises to its caller.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from .content_cache import PendingContent
from .retry import RetryingInvoker
from .schemas import Finding, JobStatus
from .state import JobStateStore
from .strategies import AnalysisStrategy
from .utils.errors import PagewiseError

logger = logging.getLogger(__name__)


@dataclass
class ProcessOutcome:
    status: JobStatus
    result: Optional[List[Finding]] = None


def chunk_progress(index: int, total: int) -> int:
    """Percentage after finishing chunk ``index`` of ``total``, rounded half up."""
    return (200 * (index + 1) + total) // (2 * total)


class UnitProcessor:
    """Drives one job through its strategy and reports into the state store."""

    def __init__(
        self,
        state: JobStateStore,
        invoker: RetryingInvoker,
        inter_chunk_delay: float = 1.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.state = state
        self.invoker = invoker
        self.inter_chunk_delay = inter_chunk_delay
        self._sleep = sleep

    async def process(
        self,
        job_id: str,
        content: PendingContent,
        model: str,
        strategy: AnalysisStrategy,
    ) -> ProcessOutcome:
        """
        Run a job to completion.

        Args:
            job_id: Job already marked ``processing``
            content: Raw upload bytes and kind options
            model: Model identifier passed to every call
            strategy: Kind-specific extract/chunk/analyze steps

        Returns:
            Terminal outcome; ``result`` is set only when completed
        """
        try:
            await self.state.update(job_id, logs=[strategy.extract_message])
            document = await strategy.extract(content)

            chunks = strategy.chunk(document)
            total = len(chunks)
            await self.state.update(job_id, logs=[f"Split into {total} chunks."])

            findings: List[Finding] = []
            for index, chunk in enumerate(chunks):
                number = index + 1
                await self.state.update(
                    job_id,
                    progress=chunk_progress(index, total),
                    logs=[f"Processing chunk {number}/{total}..."],
                )

                try:
                    chunk_findings = await strategy.analyze(
                        self.invoker, chunk, model, on_retry=self._retry_logger(job_id)
                    )
                except Exception as e:
                    logger.warning(
                        f"[processor] Chunk {number}/{total} failed: {type(e).__name__}: {e}",
                        extra={"job_id": job_id},
                    )
                    await self.state.update(job_id, logs=[f"ERROR processing chunk {number}: {e}"])
                else:
                    findings.extend(chunk_findings)
                    await self.state.update(
                        job_id,
                        logs=[f"Found {len(chunk_findings)} potential issues in chunk {number}."],
                    )

                if number < total:
                    await self._sleep(self.inter_chunk_delay)

            await self.state.update(
                job_id,
                status=JobStatus.COMPLETED,
                progress=100,
                result=findings,
                logs=[f"API calls successful. Found {len(findings)} items."],
            )
            logger.info(
                f"[processor] Job completed with {len(findings)} findings from {total} chunks",
                extra={"job_id": job_id},
            )
            return ProcessOutcome(JobStatus.COMPLETED, findings)

        except Exception as e:
            logger.error(f"[processor] Job failed: {type(e).__name__}: {e}", extra={"job_id": job_id})
            await self._fail(job_id, e)
            return ProcessOutcome(JobStatus.ERROR)

    def _retry_logger(self, job_id: str):
        async def on_retry(attempt: int, delay: float, error: BaseException) -> None:
            await self.state.update(
                job_id,
                logs=[
                    f"Rate limit hit. Retrying in {delay:g}s... "
                    f"(Attempt {attempt}/{self.invoker.max_attempts})"
                ],
            )

        return on_retry

    async def _fail(self, job_id: str, error: Exception) -> None:
        try:
            await self.state.update(job_id, status=JobStatus.ERROR, logs=[f"FATAL ERROR: {error}"])
        except PagewiseError as e:
            logger.error(f"[processor] Could not record failure: {e}", extra={"job_id": job_id})


__all__ = ["UnitProcessor", "ProcessOutcome", "chunk_progress"]
