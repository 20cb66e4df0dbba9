"""Unified configuration for the analysis pipeline and its API."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
import logging


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    The pipeline, the API and the tests all read this one configuration
    so timing constants and limits stay consistent.
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # ===== DATABASE =====
    DATABASE_URL: str = "sqlite+aiosqlite:///./pagewise.db"
    """Async SQLAlchemy connection string for owner stores and usage logs."""

    DATABASE_ECHO: bool = False
    """Enable SQLAlchemy echo for SQL debugging."""

    # ===== REDIS =====
    REDIS_URL: str = "redis://localhost:6379/0"
    """Redis connection string."""

    PUBLISH_PROGRESS: bool = False
    """Publish job snapshots to Redis pub/sub channels (progress:{job_id})."""

    # ===== OPENAI SETTINGS =====
    OPENAI_API_KEY: Optional[str] = None
    """API key for the inference service."""

    OPENAI_BASE_URL: Optional[str] = None
    """Override for OpenAI-compatible endpoints."""

    DEFAULT_MODEL: str = "gpt-4o-mini"
    """Model used when a submission does not select one."""

    # ===== CHUNKING =====
    PAGES_PER_CHUNK: int = 25
    """Whole pages per text chunk (one inference call each)."""

    WORDS_PER_PAGE: int = 300
    """Pseudo-page size for formats without real pages (DOCX, TXT)."""

    # ===== RETRY / PACING =====
    MAX_ATTEMPTS: int = 5
    """Attempts per inference call, including the first one."""

    RETRY_BASE_DELAY_MS: int = 2000
    """First backoff delay; doubles after every rate-limited attempt."""

    INTER_CHUNK_DELAY_MS: int = 1500
    """Pause between consecutive chunk calls of one job."""

    # ===== PAGE RENDERING =====
    PAGE_IMAGE_SCALE: float = 1.5
    """Zoom factor used when rendering PDF pages to images."""

    PAGE_IMAGE_QUALITY: int = 80
    """JPEG quality for rendered pages."""

    # ===== LIMITS =====
    CONTENT_CACHE_MAX_BYTES: int = 2 * 1024 * 1024 * 1024  # 2 GiB
    """Upper bound on raw bytes held for queued/processing jobs."""

    MAX_UPLOAD_SIZE: int = 104857600  # 100MB
    """Maximum upload size in bytes."""

    # ===== PROGRESS STREAM =====
    PROGRESS_POLL_SECONDS: float = 15.0
    """How often an idle progress stream checks that its job still exists."""

    # ===== LOGGING =====
    LOG_LEVEL: str = logging.getLevelName(logging.INFO)
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    # ===== APPLICATION =====
    ENV: str = "development"
    """Environment: development, staging, production."""

    DEBUG: bool = False
    """Enable debug mode."""

    @property
    def retry_base_delay(self) -> float:
        return self.RETRY_BASE_DELAY_MS / 1000

    @property
    def inter_chunk_delay(self) -> float:
        return self.INTER_CHUNK_DELAY_MS / 1000


# Singleton instance
settings = Settings()

__all__ = ["Settings", "settings"]
