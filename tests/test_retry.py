import pytest

from agentloop import Agent
from agentloop.domain import LLMResponse
from agentloop.llm.base import ModelRequest
from agentloop.llm.errors import (
    AuthenticationError,
    LLMTimeoutError,
    NetworkError,
    RateLimitError,
    ServerError,
)
from agentloop.llm.retry import (
    ExponentialBackoffPolicy,
    NoRetryPolicy,
    RateLimitInfo,
    RetryEvent,
    RetryExecutor,
    RetryingTransport,
    parse_reset_time,
)

from fakes import ScriptedTransport, text_reply


class FlakyOperation:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self):
        outcome = self.outcomes[self.calls]
        self.calls += 1
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def no_jitter(**kwargs):
    return ExponentialBackoffPolicy(jitter=0.0, **kwargs)


@pytest.mark.parametrize(
    "value,expected",
    [
        ("120ms", 0.12),
        ("1.5s", 1.5),
        ("2m", 120.0),
        ("1h", 3600.0),
        ("30", 30.0),
        ("soon", None),
        (None, None),
    ],
)
def test_parse_reset_time(value, expected):
    result = parse_reset_time(value)
    if expected is None:
        assert result is None
    else:
        assert result == pytest.approx(expected)


def test_rate_limit_info_from_headers():
    info = RateLimitInfo.from_headers(
        {
            "Retry-After": "7",
            "x-ratelimit-remaining-requests": "0",
            "x-ratelimit-reset-requests": "500ms",
            "x-ratelimit-reset-tokens": "3s",
        }
    )

    assert info.retry_after == 7.0
    assert info.remaining_requests == 0
    assert info.requests_reset_in == pytest.approx(0.5)
    assert info.tokens_reset_in == 3.0
    assert info.suggested_wait_time == 7.0


def test_suggested_wait_time_fallbacks():
    assert RateLimitInfo(requests_reset_in=2.0, tokens_reset_in=5.0).suggested_wait_time == 2.0
    assert RateLimitInfo(tokens_reset_in=5.0).suggested_wait_time == 5.0
    assert RateLimitInfo.from_headers(None).suggested_wait_time is None


def test_exponential_delays_are_capped():
    policy = no_jitter(base_delay=1.0, max_delay=5.0)
    error = ServerError(500)

    assert [policy.delay(n, error) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_jitter_stays_within_factor():
    policy = ExponentialBackoffPolicy(base_delay=2.0, jitter=0.5)
    for _ in range(20):
        assert 2.0 <= policy.delay(1, ServerError(500)) <= 3.0


def test_rate_limit_hint_takes_priority():
    policy = no_jitter(base_delay=1.0)
    error = RateLimitError(rate_limit_info=RateLimitInfo(retry_after=12.0))

    assert policy.delay(1, error) == 12.0


def test_retryable_classification():
    policy = ExponentialBackoffPolicy(max_retries=3)

    assert policy.should_retry(RateLimitError(), 1)
    assert policy.should_retry(ServerError(502), 1)
    assert policy.should_retry(LLMTimeoutError(), 1)
    assert policy.should_retry(NetworkError("reset"), 1)
    assert not policy.should_retry(ServerError(400), 1)
    assert not policy.should_retry(AuthenticationError("bad key", status_code=401), 1)
    assert not policy.should_retry(ValueError("x"), 1)
    assert not policy.should_retry(RateLimitError(), 4)
    assert not NoRetryPolicy().should_retry(RateLimitError(), 1)


@pytest.mark.asyncio
async def test_executor_retries_then_succeeds():
    sleep = RecordingSleep()
    events: list[RetryEvent] = []
    executor = RetryExecutor(no_jitter(max_retries=3), on_retry=events.append, sleep=sleep)
    operation = FlakyOperation(ServerError(503), NetworkError("reset"), "ok")

    assert await executor.execute(operation) == "ok"

    assert operation.calls == 3
    assert sleep.delays == [1.0, 2.0]
    assert [e.attempt for e in events] == [1, 2]
    assert events[0].reason == "Server error (503)"
    assert events[1].reason == "Network error"
    assert events[0].remaining_retries == 2


@pytest.mark.asyncio
async def test_executor_honors_rate_limit_hint():
    sleep = RecordingSleep()
    executor = RetryExecutor(no_jitter(max_retries=2), sleep=sleep)
    operation = FlakyOperation(
        RateLimitError(rate_limit_info=RateLimitInfo(retry_after=0.25)), "ok"
    )

    assert await executor.execute(operation) == "ok"
    assert sleep.delays == [0.25]


@pytest.mark.asyncio
async def test_executor_gives_up_on_fatal_error():
    sleep = RecordingSleep()
    executor = RetryExecutor(no_jitter(max_retries=5), sleep=sleep)
    error = AuthenticationError("bad key", status_code=401)
    operation = FlakyOperation(error)

    with pytest.raises(AuthenticationError) as exc_info:
        await executor.execute(operation)

    assert exc_info.value is error
    assert operation.calls == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_executor_reraises_last_error_after_exhaustion():
    sleep = RecordingSleep()
    executor = RetryExecutor(no_jitter(max_retries=2), sleep=sleep)
    last = ServerError(500, "third")
    operation = FlakyOperation(ServerError(500), ServerError(500), last)

    with pytest.raises(ServerError) as exc_info:
        await executor.execute(operation)

    assert exc_info.value is last
    assert operation.calls == 3
    assert len(sleep.delays) == 2


@pytest.mark.asyncio
async def test_no_retry_policy_calls_once():
    operation = FlakyOperation(ServerError(500))
    with pytest.raises(ServerError):
        await RetryExecutor(NoRetryPolicy()).execute(operation)
    assert operation.calls == 1


@pytest.mark.asyncio
async def test_retrying_transport_wraps_send():
    inner = ScriptedTransport(ServerError(502), text_reply("hello"))
    transport = RetryingTransport(inner, RetryExecutor(no_jitter(), sleep=RecordingSleep()))

    response = await transport.send(ModelRequest())

    assert isinstance(response, LLMResponse)
    assert response.text() == "hello"
    assert inner.call_count == 2


@pytest.mark.asyncio
async def test_executor_accepts_lambda_returning_coroutine():
    inner = ScriptedTransport(NetworkError("reset"), text_reply("pong"))
    executor = RetryExecutor(no_jitter(), sleep=RecordingSleep())

    response = await executor.execute(lambda: inner.send(ModelRequest()))

    assert response.text() == "pong"
    assert inner.call_count == 2


@pytest.mark.asyncio
async def test_agent_run_through_retrying_transport():
    inner = ScriptedTransport(ServerError(502), text_reply("hello"))
    sleep = RecordingSleep()
    agent = Agent(RetryingTransport(inner, RetryExecutor(no_jitter(), sleep=sleep)))

    assert await agent.run("hi") == "hello"
    assert inner.call_count == 2
    assert sleep.delays == [1.0]
