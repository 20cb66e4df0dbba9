from .errors import (
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
from .logging import setup_logging, JSONFormatter

__all__ = [
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
    "setup_logging",
    "JSONFormatter",
]
