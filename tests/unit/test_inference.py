import base64
import json
import httpx
import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import openai

from pagewise.extraction import PageImage
from pagewise.inference import InferenceClient, parse_findings
from pagewise.prompts import InferencePayload
from pagewise.schemas import (
    ComplianceFinding,
    ExtractedAsset,
    JobKind,
    JournalRecommendation,
    ManuscriptIssue,
)
from pagewise.utils.errors import InferenceError, RateLimitExceeded


ISSUE = {
    "issue_category": "Citation Integrity",
    "priority": "High",
    "summary": "Reference 22 is cited but missing",
    "quote": "as shown in [22]",
    "page_number": 4,
    "recommendation": "Add reference 22.",
}

COMPLIANCE = {
    "check_category": "Abstract length",
    "status": "fail",
    "summary": "Abstract exceeds 250 words",
    "manuscript_quote": "Abstract...",
    "manuscript_page": 1,
    "rule_content": "Abstracts must not exceed 250 words.",
    "rule_page": 2,
    "recommendation": "Shorten the abstract.",
}

JOURNAL = {
    "journal_name": "Journal of Tests",
    "publisher": "Test Press",
    "issn": "1234-5678",
    "field": "Testing",
    "reasoning": "Scope matches.",
}


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _openai_mock(content=None, side_effect=None):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=_completion(content), side_effect=side_effect)
    return client


def _request():
    return httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def test_parse_manuscript_issues():
    findings = parse_findings(
        JobKind.MANUSCRIPT_ANALYSIS, json.dumps({"findings": [ISSUE]}), InferencePayload(text="x")
    )

    assert len(findings) == 1
    assert isinstance(findings[0], ManuscriptIssue)
    assert findings[0].page_number == 4


def test_parse_skips_invalid_items():
    """Items failing validation are dropped, valid ones kept"""
    bad = dict(ISSUE, priority="Urgent")
    findings = parse_findings(
        JobKind.MANUSCRIPT_ANALYSIS, json.dumps({"findings": [bad, ISSUE]}), InferencePayload(text="x")
    )

    assert [finding.summary for finding in findings] == [ISSUE["summary"]]


@pytest.mark.parametrize("raw", [None, "", "   ", "not json", "42"])
def test_parse_empty_or_garbage_yields_nothing(raw):
    assert parse_findings(JobKind.MANUSCRIPT_ANALYSIS, raw, InferencePayload(text="x")) == []


def test_parse_compliance_with_recommendations():
    raw = json.dumps({"compliance_findings": [COMPLIANCE], "journal_recommendations": [JOURNAL]})

    with_journals = parse_findings(JobKind.COMPLIANCE_CHECK, raw, InferencePayload(recommend_journals=True))
    without = parse_findings(JobKind.COMPLIANCE_CHECK, raw, InferencePayload(recommend_journals=False))

    assert [type(f) for f in with_journals] == [ComplianceFinding, JournalRecommendation]
    assert [type(f) for f in without] == [ComplianceFinding]


def test_parse_bare_list_of_assets():
    asset = {
        "asset_id": "Table 2",
        "asset_type": "Table",
        "preview": "Results",
        "alt_text": "Table of results",
        "keywords": ["results"],
        "taxonomy": "science > research",
        "bounding_box": {"x": 10, "y": 20, "width": 50, "height": 30},
    }
    findings = parse_findings(JobKind.METADATA_EXTRACTION, json.dumps([asset]), InferencePayload())

    assert isinstance(findings[0], ExtractedAsset)
    assert findings[0].bounding_box.width == 50


@pytest.mark.asyncio
async def test_call_sends_text_prompt_and_schema():
    openai_client = _openai_mock(json.dumps({"findings": [ISSUE]}))
    client = InferenceClient(client=openai_client)

    findings = await client.call(
        JobKind.MANUSCRIPT_ANALYSIS, InferencePayload(text="[Page 1]\nBody"), "gpt-4o-mini"
    )

    assert len(findings) == 1
    kwargs = openai_client.chat.completions.create.await_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert "[Page 1]\nBody" in kwargs["messages"][0]["content"]
    assert kwargs["response_format"]["type"] == "json_schema"
    assert "findings" in kwargs["response_format"]["json_schema"]["schema"]["properties"]


@pytest.mark.asyncio
async def test_call_sends_image_as_data_url():
    openai_client = _openai_mock(json.dumps({"findings": []}))
    client = InferenceClient(client=openai_client)
    image = PageImage(3, b"jpegbytes")

    await client.call(JobKind.METADATA_EXTRACTION, InferencePayload(image=image), "gpt-4o")

    content = openai_client.chat.completions.create.await_args.kwargs["messages"][0]["content"]
    assert content[0]["type"] == "text"
    expected = "data:image/jpeg;base64," + base64.b64encode(b"jpegbytes").decode()
    assert content[1]["image_url"]["url"] == expected


@pytest.mark.asyncio
async def test_rate_limit_maps_to_rate_limit_exceeded():
    error = openai.RateLimitError(
        "Rate limit reached", response=httpx.Response(429, request=_request()), body=None
    )
    client = InferenceClient(client=_openai_mock(side_effect=error))

    with pytest.raises(RateLimitExceeded):
        await client.call(JobKind.MANUSCRIPT_ANALYSIS, InferencePayload(text="x"), "gpt-4o-mini")


@pytest.mark.asyncio
async def test_status_error_maps_to_inference_error():
    error = openai.BadRequestError(
        "Invalid schema", response=httpx.Response(400, request=_request()), body=None
    )
    client = InferenceClient(client=_openai_mock(side_effect=error))

    with pytest.raises(InferenceError) as exc_info:
        await client.call(JobKind.MANUSCRIPT_ANALYSIS, InferencePayload(text="x"), "gpt-4o-mini")

    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_connection_error_maps_to_inference_error():
    error = openai.APIConnectionError(request=_request())
    client = InferenceClient(client=_openai_mock(side_effect=error))

    with pytest.raises(InferenceError):
        await client.call(JobKind.MANUSCRIPT_ANALYSIS, InferencePayload(text="x"), "gpt-4o-mini")


@pytest.mark.asyncio
async def test_missing_api_key(monkeypatch):
    from pagewise.config import settings

    monkeypatch.setattr(settings, "OPENAI_API_KEY", None)

    with pytest.raises(InferenceError, match="OPENAI_API_KEY"):
        await InferenceClient().call(JobKind.MANUSCRIPT_ANALYSIS, InferencePayload(text="x"), "m")
