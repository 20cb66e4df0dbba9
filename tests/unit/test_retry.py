import pytest
from unittest.mock import AsyncMock

from pagewise.prompts import InferencePayload
from pagewise.retry import RetryingInvoker, is_rate_limit_error
from pagewise.schemas import JobKind
from pagewise.utils.errors import InferenceError, RateLimitExceeded

from conftest import make_issue


KIND = JobKind.MANUSCRIPT_ANALYSIS
PAYLOAD = InferencePayload(text="[Page 1]\nHello\n\n")


class StatusError(Exception):
    def __init__(self, message, status_code):
        super().__init__(message)
        self.status_code = status_code


@pytest.mark.parametrize(
    "error",
    [
        RateLimitExceeded("slow down"),
        StatusError("Too many requests", 429),
        Exception("got status 429 from upstream"),
        Exception("RESOURCE_EXHAUSTED: quota exceeded"),
    ],
)
def test_rate_limit_errors_are_detected(error):
    assert is_rate_limit_error(error)


@pytest.mark.parametrize(
    "error",
    [
        InferenceError("bad request", 400),
        StatusError("Service unavailable", 503),
        ValueError("malformed output"),
        ValueError("unexpected token at position 1429"),
        StatusError("upstream error 4290", 500),
    ],
)
def test_other_errors_are_not_rate_limits(error):
    assert not is_rate_limit_error(error)


@pytest.mark.asyncio
async def test_success_on_first_attempt(sleep_recorder):
    client = AsyncMock()
    client.call.return_value = [make_issue()]
    invoker = RetryingInvoker(client, sleep=sleep_recorder)

    findings = await invoker.invoke(KIND, PAYLOAD, "test-model")

    assert findings == [make_issue()]
    client.call.assert_awaited_once_with(KIND, PAYLOAD, "test-model")
    assert sleep_recorder.delays == []


@pytest.mark.asyncio
async def test_persistent_rate_limit_uses_all_attempts(sleep_recorder):
    """Five attempts with delays doubling from 2s, then the last error propagates"""
    client = AsyncMock()
    client.call.side_effect = [RateLimitExceeded(f"429 attempt {n}") for n in range(1, 6)]
    invoker = RetryingInvoker(client, max_attempts=5, base_delay=2.0, sleep=sleep_recorder)

    with pytest.raises(RateLimitExceeded, match="attempt 5"):
        await invoker.invoke(KIND, PAYLOAD, "test-model")

    assert client.call.await_count == 5
    assert sleep_recorder.delays == [2.0, 4.0, 8.0, 16.0]


@pytest.mark.asyncio
async def test_non_rate_limit_error_is_not_retried(sleep_recorder):
    client = AsyncMock()
    client.call.side_effect = InferenceError("invalid schema", 400)
    invoker = RetryingInvoker(client, sleep=sleep_recorder)

    with pytest.raises(InferenceError):
        await invoker.invoke(KIND, PAYLOAD, "test-model")

    assert client.call.await_count == 1
    assert sleep_recorder.delays == []


@pytest.mark.asyncio
async def test_recovers_after_rate_limit(sleep_recorder):
    client = AsyncMock()
    client.call.side_effect = [RateLimitExceeded("429"), RateLimitExceeded("429"), [make_issue()]]
    invoker = RetryingInvoker(client, sleep=sleep_recorder)

    findings = await invoker.invoke(KIND, PAYLOAD, "test-model")

    assert len(findings) == 1
    assert client.call.await_count == 3
    assert sleep_recorder.delays == [2.0, 4.0]


@pytest.mark.asyncio
async def test_on_retry_callback(sleep_recorder):
    """The hook sees attempt number, upcoming delay and the error"""
    client = AsyncMock()
    error = RateLimitExceeded("429")
    client.call.side_effect = [error, []]
    seen = []

    async def on_retry(attempt, delay, exc):
        seen.append((attempt, delay, exc))

    invoker = RetryingInvoker(client, sleep=sleep_recorder)
    await invoker.invoke(KIND, PAYLOAD, "test-model", on_retry=on_retry)

    assert seen == [(1, 2.0, error)]


def test_rejects_zero_attempts():
    with pytest.raises(ValueError):
        RetryingInvoker(AsyncMock(), max_attempts=0)
