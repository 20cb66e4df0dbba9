"""pagewise - chunked document analysis jobs with retrying inference calls."""

from .chunking import Chunk, chunk_page_images, chunk_pages
from .config import Settings, settings
from .content_cache import PendingContent, RawContentCache
from .export import render_job_report
from .owner_store import InMemoryOwnerStore, OwnerData, SqlOwnerStore
from .processor import ProcessOutcome, UnitProcessor
from .retry import RetryingInvoker, is_rate_limit_error
from .scheduler import JobScheduler
from .schemas import Finding, Job, JobKind, JobStatus, JobSubmission
from .service import PipelineService
from .state import JobStateStore
from .strategies import get_strategy
from .usage import InMemoryUsageRecorder, SqlUsageRecorder, UsageTotals
from .utils import (
    setup_logging,
    PagewiseError,
    PermanentError,
    RetryableError,
    RateLimitExceeded,
    InferenceError,
    ExtractionFailed,
    JobNotFound,
    JobAlreadyTerminal,
    JobInProgress,
    ContentCacheFull,
    UploadTooLarge,
)

__version__ = "0.1.0"
__all__ = [
    "Chunk",
    "chunk_pages",
    "chunk_page_images",
    "Settings",
    "settings",
    "PendingContent",
    "RawContentCache",
    "render_job_report",
    "InMemoryOwnerStore",
    "OwnerData",
    "SqlOwnerStore",
    "ProcessOutcome",
    "UnitProcessor",
    "RetryingInvoker",
    "is_rate_limit_error",
    "JobScheduler",
    "Finding",
    "Job",
    "JobKind",
    "JobStatus",
    "JobSubmission",
    "PipelineService",
    "JobStateStore",
    "get_strategy",
    "InMemoryUsageRecorder",
    "SqlUsageRecorder",
    "UsageTotals",
    "setup_logging",
    "PagewiseError",
    "PermanentError",
    "RetryableError",
    "RateLimitExceeded",
    "InferenceError",
    "ExtractionFailed",
    "JobNotFound",
    "JobAlreadyTerminal",
    "JobInProgress",
    "ContentCacheFull",
    "UploadTooLarge",
]
