"""Per-kind behaviour plugged into the generic unit processor.

A strategy knows how to turn raw content into an extracted document, how
to split that document into chunks, and how to analyze a single chunk
through the retrying invoker. The processor owns everything else.
"""

import logging
from typing import Any, Dict, List, Optional

from .chunking import Chunk, chunk_page_images, chunk_pages
from .config import settings
from .content_cache import PendingContent
from .extraction import ExtractedDocument, extract_page_images, extract_text
from .prompts import InferencePayload
from .retry import RetryCallback, RetryingInvoker
from .schemas import ExtractedAsset, Finding, JobKind
from .utils.errors import ExtractionFailed

logger = logging.getLogger(__name__)


class AnalysisStrategy:
    """Base class; subclasses set ``kind`` and ``tool_name``."""

    kind: JobKind
    tool_name: str
    extract_message = "Extracting text from manuscript..."

    def __init__(self, options: Optional[Dict[str, Any]] = None):
        self.options = dict(options or {})

    async def extract(self, content: PendingContent) -> ExtractedDocument:
        raise NotImplementedError

    def chunk(self, document: ExtractedDocument) -> List[Chunk]:
        raise NotImplementedError

    def build_payload(self, chunk: Chunk) -> InferencePayload:
        return InferencePayload(text=chunk.text, image=chunk.image)

    def postprocess(self, chunk: Chunk, findings: List[Finding]) -> List[Finding]:
        return findings

    async def analyze(
        self,
        invoker: RetryingInvoker,
        chunk: Chunk,
        model: str,
        on_retry: Optional[RetryCallback] = None,
    ) -> List[Finding]:
        """Run one inference call for one chunk."""
        findings = await invoker.invoke(self.kind, self.build_payload(chunk), model, on_retry=on_retry)
        return self.postprocess(chunk, list(findings))


class TextAnalysisStrategy(AnalysisStrategy):
    """Shared extract/chunk steps for manuscripts read as text."""

    async def extract(self, content: PendingContent) -> ExtractedDocument:
        words_per_page = self.options.get("words_per_page", settings.WORDS_PER_PAGE)
        return await extract_text(content.filename, content.data, words_per_page=words_per_page)

    def chunk(self, document: ExtractedDocument) -> List[Chunk]:
        return chunk_pages(document.text, self.options.get("pages_per_chunk", settings.PAGES_PER_CHUNK))


class ManuscriptAnalysisStrategy(TextAnalysisStrategy):
    kind = JobKind.MANUSCRIPT_ANALYSIS
    tool_name = "Manuscript Analyzer"


class ComplianceCheckStrategy(TextAnalysisStrategy):
    """Checks manuscript chunks against a rules document.

    Journal recommendations, when requested, are only asked for with the
    first chunk.
    """

    kind = JobKind.COMPLIANCE_CHECK
    tool_name = "Compliance Checker"

    async def extract(self, content: PendingContent) -> ExtractedDocument:
        rules = (self.options.get("rules_text") or "").strip()
        if not rules:
            raise ExtractionFailed("No rule documents found or they are empty.")
        return await super().extract(content)

    def build_payload(self, chunk: Chunk) -> InferencePayload:
        return InferencePayload(
            text=chunk.text,
            rules_text=self.options.get("rules_text"),
            recommend_journals=bool(self.options.get("recommend_journals")) and chunk.index == 0,
        )


class MetadataExtractionStrategy(AnalysisStrategy):
    """Asset metadata from page images, one page per call."""

    kind = JobKind.METADATA_EXTRACTION
    tool_name = "Metadata Extractor"
    extract_message = "Rendering document pages..."

    async def extract(self, content: PendingContent) -> ExtractedDocument:
        return await extract_page_images(
            content.filename,
            content.data,
            scale=self.options.get("page_image_scale", settings.PAGE_IMAGE_SCALE),
            quality=self.options.get("page_image_quality", settings.PAGE_IMAGE_QUALITY),
        )

    def chunk(self, document: ExtractedDocument) -> List[Chunk]:
        return chunk_page_images(document.page_images)

    def postprocess(self, chunk: Chunk, findings: List[Finding]) -> List[Finding]:
        page_number = chunk.pages[0]
        return [
            finding.model_copy(update={"page_number": page_number})
            if isinstance(finding, ExtractedAsset)
            else finding
            for finding in findings
        ]


STRATEGIES = {
    JobKind.MANUSCRIPT_ANALYSIS: ManuscriptAnalysisStrategy,
    JobKind.COMPLIANCE_CHECK: ComplianceCheckStrategy,
    JobKind.METADATA_EXTRACTION: MetadataExtractionStrategy,
}


def get_strategy(kind: JobKind, options: Optional[Dict[str, Any]] = None) -> AnalysisStrategy:
    """Instantiate the strategy for a job kind."""
    try:
        strategy_cls = STRATEGIES[JobKind(kind)]
    except (KeyError, ValueError) as e:
        raise ValueError(f"Unknown job kind: {kind}") from e
    return strategy_cls(options)


__all__ = [
    "AnalysisStrategy",
    "TextAnalysisStrategy",
    "ManuscriptAnalysisStrategy",
    "ComplianceCheckStrategy",
    "MetadataExtractionStrategy",
    "STRATEGIES",
    "get_strategy",
]
