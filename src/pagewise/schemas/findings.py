"""Structured findings returned by inference calls.

Every finding carries a ``finding_type`` discriminator so a job result can
hold a mixed, ordered list (compliance findings followed by journal
recommendations, for example) and still round-trip through JSON.
"""

import enum
from typing import Annotated, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field


class AssetType(str, enum.Enum):
    FIGURE = "Figure"
    TABLE = "Table"
    IMAGE = "Image"
    EQUATION = "Equation"
    MAP = "Map"
    GRAPH = "Graph"


class ComplianceStatus(str, enum.Enum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"


class IssuePriority(str, enum.Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class IssueCategory(str, enum.Enum):
    GRAMMAR = "Grammar"
    PLAGIARISM_CONCERN = "Plagiarism Concern"
    STRUCTURAL_INTEGRITY = "Structural Integrity"
    CLARITY = "Clarity"
    ETHICAL_CONCERN = "Ethical Concern"
    SPELLING = "Spelling"
    CITATION_INTEGRITY = "Citation Integrity"
    IDENTIFIER_INTEGRITY = "Identifier Integrity"


class BoundingBox(BaseModel):
    """Asset position on its page, all values in percent (0-100)."""
    x: float
    y: float
    width: float
    height: float


class ExtractedAsset(BaseModel):
    """A figure, table, equation or similar asset found on a page."""
    finding_type: Literal["asset"] = "asset"
    id: str = Field(default_factory=lambda: uuid4().hex)
    asset_id: str
    asset_type: AssetType
    preview: str
    alt_text: str
    keywords: List[str] = Field(default_factory=list)
    taxonomy: str = ""
    bounding_box: Optional[BoundingBox] = None
    page_number: Optional[int] = None

    def report_lines(self) -> List[str]:
        where = f"p. {self.page_number}" if self.page_number is not None else "standalone"
        return [
            f"[{self.asset_type.value.upper()}] {self.asset_id} ({where})",
            f"- Preview: {self.preview}",
            f"- Alt text: {self.alt_text}",
            f"- Keywords: {', '.join(self.keywords)}",
            f"- Taxonomy: {self.taxonomy}",
        ]


class ComplianceFinding(BaseModel):
    """Result of checking one rule against the manuscript."""
    finding_type: Literal["compliance"] = "compliance"
    check_category: str
    status: ComplianceStatus
    summary: str
    manuscript_quote: str = ""
    manuscript_page: Optional[int] = None
    rule_content: str = ""
    rule_page: Optional[int] = None
    recommendation: str = ""

    def report_lines(self) -> List[str]:
        return [
            f"[{self.status.value.upper()}] {self.check_category}",
            f"- Summary: {self.summary}",
            f"- Manuscript (p. {self.manuscript_page}): \"{self.manuscript_quote}\"",
            f"- Rule (p. {self.rule_page}): \"{self.rule_content}\"",
            f"- Recommendation: {self.recommendation}",
        ]


class JournalRecommendation(BaseModel):
    """A journal suggested as a submission target."""
    finding_type: Literal["journal_recommendation"] = "journal_recommendation"
    journal_name: str
    publisher: str
    issn: Optional[str] = None
    field: str
    reasoning: str

    def report_lines(self) -> List[str]:
        issn = f" (ISSN {self.issn})" if self.issn else ""
        return [
            f"[JOURNAL] {self.journal_name}{issn}",
            f"- Publisher: {self.publisher}",
            f"- Field: {self.field}",
            f"- Reasoning: {self.reasoning}",
        ]


class ManuscriptIssue(BaseModel):
    """An editorial or integrity problem flagged in a manuscript chunk."""
    finding_type: Literal["issue"] = "issue"
    issue_category: IssueCategory
    priority: IssuePriority
    summary: str
    quote: str = ""
    page_number: Optional[int] = None
    recommendation: str = ""

    def report_lines(self) -> List[str]:
        return [
            f"[{self.priority.value.upper()}] {self.issue_category.value}",
            f"- Summary: {self.summary}",
            f"- Manuscript (p. {self.page_number}): \"{self.quote}\"",
            f"- Recommendation: {self.recommendation}",
        ]


Finding = Annotated[
    Union[ExtractedAsset, ComplianceFinding, JournalRecommendation, ManuscriptIssue],
    Field(discriminator="finding_type"),
]

__all__ = [
    "AssetType",
    "ComplianceStatus",
    "IssuePriority",
    "IssueCategory",
    "BoundingBox",
    "ExtractedAsset",
    "ComplianceFinding",
    "JournalRecommendation",
    "ManuscriptIssue",
    "Finding",
]
