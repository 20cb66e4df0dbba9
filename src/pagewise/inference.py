"""OpenAI-backed inference client returning validated findings."""

import base64
import json
import logging
from typing import Any, Dict, List, Optional, Type

from openai import APIError, APIStatusError, AsyncOpenAI, RateLimitError
from pydantic import BaseModel, ValidationError

from .prompts import InferencePayload, build_prompt, response_schema
from .schemas import (
    ComplianceFinding,
    ExtractedAsset,
    Finding,
    JobKind,
    JournalRecommendation,
    ManuscriptIssue,
)
from .utils.errors import InferenceError, RateLimitExceeded

logger = logging.getLogger(__name__)

_ITEM_MODELS: Dict[JobKind, Type[BaseModel]] = {
    JobKind.METADATA_EXTRACTION: ExtractedAsset,
    JobKind.COMPLIANCE_CHECK: ComplianceFinding,
    JobKind.MANUSCRIPT_ANALYSIS: ManuscriptIssue,
}


def _validate_items(items: Any, model_cls: Type[BaseModel]) -> List[Finding]:
    if not isinstance(items, list):
        logger.warning(f"[inference] Expected a list of {model_cls.__name__}, got {type(items).__name__}")
        return []

    findings = []
    for position, item in enumerate(items):
        try:
            findings.append(model_cls.model_validate(item))
        except ValidationError as e:
            logger.warning(
                f"[inference] Skipping invalid {model_cls.__name__} at index {position}: "
                f"{e.error_count()} validation errors"
            )
    return findings


def parse_findings(kind: JobKind, raw: Optional[str], payload: InferencePayload) -> List[Finding]:
    """
    Turn the raw JSON text of a completion into findings.

    Empty or non-JSON output yields no findings; items that fail
    validation are skipped. Journal recommendations are only kept when the
    payload asked for them.
    """
    if not raw or not raw.strip():
        logger.warning(f"[inference] Empty response for {kind.value}, returning no findings")
        return []

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"[inference] Non-JSON response for {kind.value}: {e}")
        return []

    if isinstance(data, list):
        data = {"findings": data}
    if not isinstance(data, dict):
        logger.warning(f"[inference] Unexpected response shape for {kind.value}")
        return []

    if kind == JobKind.COMPLIANCE_CHECK:
        findings = _validate_items(data.get("compliance_findings", []), ComplianceFinding)
        if payload.recommend_journals:
            findings.extend(_validate_items(data.get("journal_recommendations", []), JournalRecommendation))
        return findings

    return _validate_items(data.get("findings", []), _ITEM_MODELS[kind])


def _message_content(kind: JobKind, payload: InferencePayload) -> Any:
    prompt = build_prompt(kind, payload)
    if payload.image is None:
        return prompt

    encoded = base64.b64encode(payload.image.data).decode("ascii")
    return [
        {"type": "text", "text": prompt},
        {
            "type": "image_url",
            "image_url": {"url": f"data:{payload.image.mime_type};base64,{encoded}"},
        },
    ]


class InferenceClient:
    """Single-call adapter over ``AsyncOpenAI`` chat completions."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self._api_key = api_key
        self._base_url = base_url
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            from .config import settings

            api_key = self._api_key or settings.OPENAI_API_KEY
            if not api_key:
                raise InferenceError(
                    "OPENAI_API_KEY not configured. "
                    "Please set OPENAI_API_KEY environment variable"
                )
            self._client = AsyncOpenAI(api_key=api_key, base_url=self._base_url or settings.OPENAI_BASE_URL)
        return self._client

    async def call(self, kind: JobKind, payload: InferencePayload, model: str) -> List[Finding]:
        """Run one completion and return its findings.

        Args:
            kind: Selects prompt and response schema
            payload: Chunk text or page image plus kind options
            model: Model identifier

        Returns:
            Validated findings, possibly empty

        Raises:
            RateLimitExceeded: The service throttled the request
            InferenceError: Any other API failure
        """
        client = self.client
        logger.debug(
            "[inference] Calling chat completions",
            extra={"kind": kind.value, "model": model, "has_image": payload.image is not None},
        )

        try:
            response = await client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": _message_content(kind, payload)}],
                response_format={
                    "type": "json_schema",
                    "json_schema": {"name": f"{kind.value}_result", "schema": response_schema(kind)},
                },
            )
        except RateLimitError as e:
            logger.warning(f"[inference] Rate limited: {e}")
            raise RateLimitExceeded(f"429 rate limit exceeded: {e}") from e
        except APIStatusError as e:
            if e.status_code == 429:
                raise RateLimitExceeded(f"429 rate limit exceeded: {e}") from e
            logger.error(f"[inference] API error {e.status_code}: {e}")
            raise InferenceError(f"Inference API error ({e.status_code}): {e.message}", e.status_code) from e
        except APIError as e:
            logger.error(f"[inference] API error: {type(e).__name__}: {e}")
            raise InferenceError(f"Inference API error: {e}") from e

        if not response.choices:
            logger.warning(f"[inference] No choices returned for {kind.value}")
            return []

        return parse_findings(kind, response.choices[0].message.content, payload)


__all__ = ["InferenceClient", "parse_findings"]
