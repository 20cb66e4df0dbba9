"""Per-owner persistent store of job records.

The only write operation is ``apply_update(owner_id, fn)``: ``fn`` receives
the owner's current data and returns the new data. Updates for the same
owner are serialized.
"""

import asyncio
import json
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from .models import OwnerStoreRecord
from .schemas import Job

logger = logging.getLogger(__name__)

CURRENT_SCHEMA_VERSION = 1


class OwnerData(BaseModel):
    """Versioned document holding one owner's job records."""
    schema_version: int = CURRENT_SCHEMA_VERSION
    jobs: List[Job] = Field(default_factory=list)

    def find_job(self, job_id: str) -> Optional[Job]:
        return next((job for job in self.jobs if job.id == job_id), None)

    def upsert_job(self, job: Job) -> "OwnerData":
        """Return a copy with ``job`` inserted or replacing the record with its id."""
        jobs = [job if existing.id == job.id else existing for existing in self.jobs]
        if self.find_job(job.id) is None:
            jobs.append(job)
        return self.model_copy(update={"jobs": jobs})

    def remove_job(self, job_id: str) -> "OwnerData":
        return self.model_copy(update={"jobs": [job for job in self.jobs if job.id != job_id]})


UpdateFn = Callable[[OwnerData], OwnerData]


def migrate_payload(raw: Union[Dict[str, Any], List[Any], None]) -> Dict[str, Any]:
    """
    Bring a stored payload up to the current schema version.

    Version 0 payloads carry no ``schema_version``: either a bare list of
    job records or an object with a ``jobs`` list.

    Raises:
        ValueError: If the payload was written by a newer schema version
    """
    if raw is None:
        return {"schema_version": CURRENT_SCHEMA_VERSION, "jobs": []}
    if isinstance(raw, list):
        raw = {"jobs": raw}

    version = raw.get("schema_version", 0)
    if version > CURRENT_SCHEMA_VERSION:
        raise ValueError(f"Unsupported owner data schema version: {version}")

    if version == 0:
        logger.info("[owner_store] Migrating legacy owner data to schema version 1")
        raw = {"schema_version": 1, "jobs": list(raw.get("jobs") or [])}

    return raw


def load_owner_data(raw: Union[str, Dict[str, Any], List[Any], None]) -> OwnerData:
    if isinstance(raw, str):
        raw = json.loads(raw) if raw.strip() else None
    return OwnerData.model_validate(migrate_payload(raw))


def _apply(fn: UpdateFn, current: OwnerData) -> OwnerData:
    updated = fn(current.model_copy(deep=True))
    if not isinstance(updated, OwnerData):
        raise TypeError("Owner store update functions must return OwnerData")
    return updated


class InMemoryOwnerStore:
    def __init__(self):
        self._data: Dict[str, OwnerData] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def get(self, owner_id: str) -> OwnerData:
        data = self._data.get(owner_id) or OwnerData()
        return data.model_copy(deep=True)

    async def apply_update(self, owner_id: str, fn: UpdateFn) -> OwnerData:
        async with self._locks[owner_id]:
            updated = _apply(fn, self._data.get(owner_id) or OwnerData())
            self._data[owner_id] = updated
            return updated.model_copy(deep=True)


class SqlOwnerStore:
    """Owner data stored as one JSON row per owner (``owner_stores`` table)."""

    def __init__(self, session_factory):
        self._session_factory = session_factory
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def get(self, owner_id: str) -> OwnerData:
        async with self._session_factory() as session:
            record = await session.get(OwnerStoreRecord, owner_id)
            return load_owner_data(record.payload if record else None)

    async def apply_update(self, owner_id: str, fn: UpdateFn) -> OwnerData:
        """
        Read, transform and write back one owner's data in a transaction.

        Args:
            owner_id: Owner whose data is updated
            fn: Pure function from current to new data

        Returns:
            The data as written
        """
        async with self._locks[owner_id]:
            async with self._session_factory() as session:
                record = await session.get(OwnerStoreRecord, owner_id)
                updated = _apply(fn, load_owner_data(record.payload if record else None))

                if record is None:
                    record = OwnerStoreRecord(owner_id=owner_id)
                    session.add(record)
                record.schema_version = updated.schema_version
                record.payload = updated.model_dump_json()

                await session.commit()

        logger.debug(f"[owner_store] Saved {len(updated.jobs)} job records for owner {owner_id}")
        return updated


__all__ = [
    "OwnerData",
    "UpdateFn",
    "CURRENT_SCHEMA_VERSION",
    "migrate_payload",
    "load_owner_data",
    "InMemoryOwnerStore",
    "SqlOwnerStore",
]
