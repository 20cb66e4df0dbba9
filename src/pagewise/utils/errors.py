"""Error definitions for the analysis pipeline."""

from typing import Optional


class PagewiseError(Exception):
    """Base exception for pagewise."""
    pass


class PermanentError(PagewiseError):
    """Error that should not be retried."""
    pass


class RetryableError(PagewiseError):
    """Error that can be retried with backoff."""
    pass


class RateLimitExceeded(RetryableError):
    """The inference service throttled the request."""

    def __init__(self, message: str, status_code: Optional[int] = 429):
        super().__init__(message)
        self.status_code = status_code


class InferenceError(PermanentError):
    """The inference service failed or returned something unusable."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ExtractionFailed(PermanentError):
    """Raw content could not be read or parsed."""
    pass


class JobNotFound(PermanentError):
    """No job with that id is known."""
    pass


class JobAlreadyTerminal(PermanentError):
    """A completed or failed job cannot be mutated."""
    pass


class JobInProgress(PermanentError):
    """The job is running and cannot be removed."""
    pass


class ContentCacheFull(PermanentError):
    """Accepting the upload would exceed the raw content budget."""
    pass


class UploadTooLarge(PermanentError):
    """The upload exceeds the configured size limit."""
    pass
