"""Prompt text and JSON response schemas per job kind."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .extraction import PageImage
from .schemas import (
    AssetType,
    ComplianceStatus,
    IssueCategory,
    IssuePriority,
    JobKind,
)


@dataclass
class InferencePayload:
    """Everything one inference call needs besides the model name."""
    text: Optional[str] = None
    image: Optional[PageImage] = None
    rules_text: Optional[str] = None
    recommend_journals: bool = False


def _enum_values(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


# ===== RESPONSE SCHEMAS =====
ASSET_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "asset_id": {
            "type": "string",
            "description": 'A unique identifier for the asset, e.g. "Figure 1.1", "Table 2".',
        },
        "asset_type": {"type": "string", "enum": _enum_values(AssetType)},
        "preview": {
            "type": "string",
            "description": "A brief, one-sentence description or the content of the asset.",
        },
        "alt_text": {
            "type": "string",
            "description": "Detailed, context-aware alternative text for accessibility.",
        },
        "keywords": {"type": "array", "items": {"type": "string"}},
        "taxonomy": {
            "type": "string",
            "description": 'IPTC Media Topics classification, e.g. "sport > association football (soccer)".',
        },
        "bounding_box": {
            "type": "object",
            "description": "Position on the page; all values are percentages (0-100).",
            "properties": {
                "x": {"type": "number"},
                "y": {"type": "number"},
                "width": {"type": "number"},
                "height": {"type": "number"},
            },
            "required": ["x", "y", "width", "height"],
        },
    },
    "required": ["asset_id", "asset_type", "preview", "alt_text", "keywords", "taxonomy"],
}

COMPLIANCE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "check_category": {"type": "string"},
        "status": {"type": "string", "enum": _enum_values(ComplianceStatus)},
        "summary": {"type": "string"},
        "manuscript_quote": {"type": "string"},
        "manuscript_page": {"type": "integer"},
        "rule_content": {"type": "string"},
        "rule_page": {"type": "integer"},
        "recommendation": {"type": "string"},
    },
    "required": ["check_category", "status", "summary", "recommendation"],
}

JOURNAL_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "journal_name": {"type": "string"},
        "publisher": {"type": "string"},
        "issn": {"type": "string"},
        "field": {"type": "string"},
        "reasoning": {"type": "string"},
    },
    "required": ["journal_name", "publisher", "field", "reasoning"],
}

ISSUE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "issue_category": {"type": "string", "enum": _enum_values(IssueCategory)},
        "priority": {"type": "string", "enum": _enum_values(IssuePriority)},
        "summary": {"type": "string"},
        "quote": {"type": "string"},
        "page_number": {"type": "integer"},
        "recommendation": {"type": "string"},
    },
    "required": ["issue_category", "priority", "summary", "quote", "page_number", "recommendation"],
}


def _list_of(item_schema: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "array", "items": item_schema}


def response_schema(kind: JobKind) -> Dict[str, Any]:
    """Top-level JSON schema for one call of the given kind."""
    if kind == JobKind.COMPLIANCE_CHECK:
        properties = {
            "compliance_findings": _list_of(COMPLIANCE_SCHEMA),
            "journal_recommendations": _list_of(JOURNAL_SCHEMA),
        }
    elif kind == JobKind.METADATA_EXTRACTION:
        properties = {"findings": _list_of(ASSET_SCHEMA)}
    else:
        properties = {"findings": _list_of(ISSUE_SCHEMA)}

    return {"type": "object", "properties": properties, "required": list(properties)}


# ===== PROMPTS =====
PAGE_ASSETS_PROMPT = (
    "Analyze the provided image, which is a single page from a document. Find ALL assets "
    "(figures, tables, images, equations, maps and graphs) on this page. For each asset, "
    "extract its metadata according to the schema. For the taxonomy field, use the IPTC "
    "Media Topics standard to build a hierarchical classification. If no assets are found, "
    "return an empty list."
)

COMPLIANCE_PROMPT = """You are a meticulous compliance editor and an expert in academic publishing. Perform two tasks on the MANUSCRIPT CHUNK.

1. Compliance check:
Compare the chunk against the RULES DOCUMENT. For every rule you can verify, provide a finding. If evidence is not present, do not report on that rule.

2. Journal recommendations:
{journal_instruction}

Return a single JSON object with both 'compliance_findings' and 'journal_recommendations'.

MANUSCRIPT CHUNK:
{manuscript}

RULES DOCUMENT TEXT:
{rules}
"""

RECOMMEND_JOURNALS = (
    "Based on the manuscript's abstract, keywords, structure and references, suggest 3-5 "
    "suitable journals for submission. Base this only on the content of this chunk."
)

SKIP_JOURNALS = "Do not provide journal recommendations. Return an empty list for 'journal_recommendations'."

MANUSCRIPT_PROMPT = """You are an expert manuscript editor and technical pre-flight checker for an academic publisher. Analyze the MANUSCRIPT CHUNK and report every issue you find according to the JSON schema.

1. Editorial analysis: grammar and spelling errors, unclear sentences and poor flow, ethical concerns (for example a missing consent statement), and passages that look unoriginal enough to warrant a plagiarism review.

2. Citation integrity: cross-reference in-text citations with the reference list. Report citations without a reference entry, references never cited, and gaps in numbered citation sequences.

3. Identifier integrity: check DOIs, ISBNs, ISSNs, arXiv and PubMed identifiers in the reference list for malformed or structurally invalid values.

4. Figure and table integrity: report numbering gaps, missing or malformed captions, figures or tables never mentioned in the text, and items mentioned only after they appear. Add one Low priority reminder to check figure resolution manually.

Priorities: High for publication-blocking problems (citation breaks, missing captions), Medium for significant ones (malformed DOIs, out-of-order figures), Low for minor ones. Be precise with quotes and page numbers; pages are marked as [Page N].

MANUSCRIPT CHUNK:
{manuscript}
"""


def build_prompt(kind: JobKind, payload: InferencePayload) -> str:
    """Render the instruction text for one call."""
    if kind == JobKind.METADATA_EXTRACTION:
        return PAGE_ASSETS_PROMPT
    if kind == JobKind.COMPLIANCE_CHECK:
        return COMPLIANCE_PROMPT.format(
            journal_instruction=RECOMMEND_JOURNALS if payload.recommend_journals else SKIP_JOURNALS,
            manuscript=payload.text or "",
            rules=payload.rules_text or "",
        )
    return MANUSCRIPT_PROMPT.format(manuscript=payload.text or "")


__all__ = [
    "InferencePayload",
    "response_schema",
    "build_prompt",
    "ASSET_SCHEMA",
    "COMPLIANCE_SCHEMA",
    "JOURNAL_SCHEMA",
    "ISSUE_SCHEMA",
]
