"""Type-safe job definitions."""

import enum
from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from .findings import Finding


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, enum.Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.ERROR)


class JobKind(str, enum.Enum):
    METADATA_EXTRACTION = "metadata_extraction"
    COMPLIANCE_CHECK = "compliance_check"
    MANUSCRIPT_ANALYSIS = "manuscript_analysis"


class Job(BaseModel):
    """One analysis request for one document."""
    id: str = Field(default_factory=lambda: uuid4().hex)
    owner_id: str
    kind: JobKind
    model: str
    source_name: str
    status: JobStatus = JobStatus.QUEUED
    progress: int = Field(default=0, ge=0, le=100)
    logs: List[str] = Field(default_factory=list)
    result: Optional[List[Finding]] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": "3f1c0c4e9a3b4d1f8f1e2a7b6c5d4e3f",
                "owner_id": "owner_1",
                "kind": "manuscript_analysis",
                "model": "gpt-4o-mini",
                "source_name": "chapter-01.pdf",
                "status": "queued",
                "progress": 0,
                "logs": [],
            }
        }
    }


class JobSubmission(BaseModel):
    """Metadata accompanying an upload."""
    owner_id: str
    kind: JobKind
    source_name: str
    model: Optional[str] = None
    rules_text: Optional[str] = None
    recommend_journals: bool = False


__all__ = ["JobStatus", "JobKind", "Job", "JobSubmission"]
