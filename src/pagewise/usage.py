"""Usage accounting for completed jobs.

Token counts are synthetic placeholders until the inference client reports
real usage: prompt tokens are drawn from 500..3499 and response tokens from
300..2299.
"""

import logging
import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol
from uuid import uuid4

from sqlalchemy import func, select

from .models import UsageLogRecord

logger = logging.getLogger(__name__)


@dataclass
class UsageTotals:
    prompt_tokens: int
    response_tokens: int

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.response_tokens


@dataclass
class UsageEntry:
    id: str
    owner_id: str
    tool_name: str
    model_name: str
    job_id: Optional[str]
    source_name: Optional[str]
    prompt_tokens: int
    response_tokens: int


def synthesize_usage(rng: Optional[random.Random] = None) -> UsageTotals:
    rng = rng or random
    return UsageTotals(
        prompt_tokens=rng.randint(500, 3499),
        response_tokens=rng.randint(300, 2299),
    )


class UsageRecorder(Protocol):
    async def record_usage(
        self,
        owner_id: str,
        tool_name: str,
        model_name: str,
        job_id: Optional[str] = None,
        source_name: Optional[str] = None,
    ) -> UsageTotals:
        ...


class InMemoryUsageRecorder:
    """Keeps usage entries and per-owner token totals in memory."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng
        self.entries: List[UsageEntry] = []
        self.tokens_used: Dict[str, int] = {}

    async def record_usage(
        self,
        owner_id: str,
        tool_name: str,
        model_name: str,
        job_id: Optional[str] = None,
        source_name: Optional[str] = None,
    ) -> UsageTotals:
        totals = synthesize_usage(self._rng)
        self.entries.append(
            UsageEntry(
                id=uuid4().hex,
                owner_id=owner_id,
                tool_name=tool_name,
                model_name=model_name,
                job_id=job_id,
                source_name=source_name,
                prompt_tokens=totals.prompt_tokens,
                response_tokens=totals.response_tokens,
            )
        )
        self.tokens_used[owner_id] = self.tokens_used.get(owner_id, 0) + totals.total_tokens
        logger.info(
            f"[usage] Recorded {totals.total_tokens} tokens for {tool_name}",
            extra={"job_id": job_id},
        )
        return totals


class SqlUsageRecorder:
    """Writes one ``usage_logs`` row per completed job."""

    def __init__(self, session_factory, rng: Optional[random.Random] = None):
        self._session_factory = session_factory
        self._rng = rng

    async def record_usage(
        self,
        owner_id: str,
        tool_name: str,
        model_name: str,
        job_id: Optional[str] = None,
        source_name: Optional[str] = None,
    ) -> UsageTotals:
        totals = synthesize_usage(self._rng)
        async with self._session_factory() as session:
            session.add(
                UsageLogRecord(
                    id=uuid4().hex,
                    owner_id=owner_id,
                    tool_name=tool_name,
                    model_name=model_name,
                    job_id=job_id,
                    source_name=source_name,
                    prompt_tokens=totals.prompt_tokens,
                    response_tokens=totals.response_tokens,
                )
            )
            await session.commit()

        logger.info(
            f"[usage] Recorded {totals.total_tokens} tokens for {tool_name}",
            extra={"job_id": job_id},
        )
        return totals

    async def tokens_used(self, owner_id: str) -> int:
        """Sum of prompt and response tokens recorded for an owner."""
        async with self._session_factory() as session:
            stmt = select(
                func.coalesce(
                    func.sum(UsageLogRecord.prompt_tokens + UsageLogRecord.response_tokens), 0
                )
            ).where(UsageLogRecord.owner_id == owner_id)
            result = await session.execute(stmt)
            return int(result.scalar_one())


__all__ = [
    "UsageTotals",
    "UsageEntry",
    "UsageRecorder",
    "InMemoryUsageRecorder",
    "SqlUsageRecorder",
    "synthesize_usage",
]
