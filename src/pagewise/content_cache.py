"""Bounded in-memory side-table of raw upload bytes keyed by job id."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .utils.errors import ContentCacheFull

logger = logging.getLogger(__name__)


@dataclass
class PendingContent:
    """Raw bytes of one upload plus the options its job kind needs."""
    data: bytes
    filename: str
    content_type: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return len(self.data)


class RawContentCache:
    """Holds uploads for queued and processing jobs; never persisted.

    The byte budget is checked when content is added. Entries are removed
    with ``release`` once a job reaches a terminal state or is deleted
    while still queued.
    """

    def __init__(self, max_bytes: int):
        self.max_bytes = max_bytes
        self._entries: Dict[str, PendingContent] = {}
        self._total = 0

    @property
    def total_bytes(self) -> int:
        return self._total

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._entries

    def put(self, job_id: str, content: PendingContent) -> None:
        """
        Store content for a job.

        Raises:
            ContentCacheFull: If the upload would push the cache over its budget
        """
        previous = self._entries.get(job_id)
        projected = self._total - (previous.size if previous else 0) + content.size
        if projected > self.max_bytes:
            raise ContentCacheFull(
                f"Upload of {content.size} bytes exceeds the raw content budget "
                f"({self._total}/{self.max_bytes} bytes in use)"
            )

        self._entries[job_id] = content
        self._total = projected
        logger.debug(f"[content_cache] Stored {content.size} bytes for job {job_id}")

    def get(self, job_id: str) -> Optional[PendingContent]:
        return self._entries.get(job_id)

    def release(self, job_id: str) -> bool:
        """Drop a job's content. Returns False if nothing was held."""
        content = self._entries.pop(job_id, None)
        if content is None:
            return False
        self._total -= content.size
        logger.debug(f"[content_cache] Released {content.size} bytes for job {job_id}")
        return True


__all__ = ["PendingContent", "RawContentCache"]
