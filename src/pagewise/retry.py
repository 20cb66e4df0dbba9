"""Retrying invoker: bounded exponential backoff around one inference call.

Only rate-limit failures are retried. The delay starts at the base delay
and doubles after every throttled attempt (2s, 4s, 8s, 16s with the
defaults); there is no jitter and no cap other than the attempt limit.
Once attempts run out the last error propagates unchanged.

Built on tenacity's ``AsyncRetrying``:

    >>> invoker = RetryingInvoker(client, max_attempts=5, base_delay=2.0)
    >>> findings = await invoker.invoke(JobKind.MANUSCRIPT_ANALYSIS, payload, "gpt-4o-mini")
"""

import asyncio
import inspect
import logging
import re
from typing import Any, Awaitable, Callable, List, Optional, Protocol, Union

from openai import RateLimitError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .schemas import Finding, JobKind
from .utils.errors import RateLimitExceeded

logger = logging.getLogger(__name__)

RATE_LIMIT_MARKERS = ("429", "RESOURCE_EXHAUSTED")
RATE_LIMIT_PATTERN = re.compile(
    r"\b(?:" + "|".join(RATE_LIMIT_MARKERS) + r")\b", re.IGNORECASE
)

RetryCallback = Callable[[int, float, BaseException], Union[None, Awaitable[None]]]


class InferenceCall(Protocol):
    async def call(self, kind: JobKind, payload: Any, model: str) -> List[Finding]:
        ...


def is_rate_limit_error(error: BaseException) -> bool:
    """Classify an inference failure as throttling (retriable) or not."""
    if isinstance(error, (RateLimitExceeded, RateLimitError)):
        return True

    for attr in ("status_code", "status", "code"):
        if getattr(error, attr, None) in (429, "429"):
            return True

    return RATE_LIMIT_PATTERN.search(str(error)) is not None


class RetryingInvoker:
    """Wrap exactly one external call per ``invoke`` with rate-limit retries."""

    def __init__(
        self,
        client: InferenceCall,
        max_attempts: int = 5,
        base_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.client = client
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep

    async def invoke(
        self,
        kind: JobKind,
        payload: Any,
        model: str,
        on_retry: Optional[RetryCallback] = None,
    ) -> List[Finding]:
        """
        Call the inference client, retrying only on rate-limit errors.

        Args:
            kind: Output schema selector
            payload: Chunk text or page image
            model: Model identifier chosen by the caller
            on_retry: Optional hook ``(attempt, delay_seconds, error)`` run
                before each backoff sleep

        Returns:
            Findings returned by the client

        Raises:
            Exception: The first non-rate-limit error, or the last rate-limit
                error once ``max_attempts`` is reached
        """

        async def before_sleep(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception()
            delay = retry_state.next_action.sleep
            logger.warning(
                f"[retry] Rate limit hit. Retrying in {delay:g}s... "
                f"(Attempt {retry_state.attempt_number}/{self.max_attempts})",
                extra={"kind": kind.value, "model": model},
            )
            if on_retry is not None:
                outcome = on_retry(retry_state.attempt_number, delay, error)
                if inspect.isawaitable(outcome):
                    await outcome

        retrying = AsyncRetrying(
            sleep=self._sleep,
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay, exp_base=2),
            retry=retry_if_exception(is_rate_limit_error),
            before_sleep=before_sleep,
            reraise=True,
        )

        findings: List[Finding] = []
        async for attempt in retrying:
            with attempt:
                findings = await self.client.call(kind, payload, model)
        return findings


__all__ = ["RetryingInvoker", "InferenceCall", "RetryCallback", "is_rate_limit_error", "RATE_LIMIT_MARKERS"]
