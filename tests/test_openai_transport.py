"""
OpenAI transport: message conversion, response mapping, error mapping and logging.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import httpx
import openai
import pytest

from agentloop.domain import Message, MessageRole, StopReason, ToolDefinition, ToolResultBlock, ToolUseBlock
from agentloop.llm.base import ModelRequest
from agentloop.llm.errors import (
    AuthenticationError,
    EmptyResponseError,
    LLMTimeoutError,
    NetworkError,
    RateLimitError,
    ServerError,
)
from agentloop.llm.openai import (
    OpenAITransport,
    convert_openai_error,
    from_openai_completion,
    to_openai_messages,
)

REQUEST = httpx.Request("POST", "https://api.openai.test/v1/chat/completions")


def completion(content=None, tool_calls=None, finish_reason="stop", usage=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message, finish_reason=finish_reason)],
        usage=usage,
        model="gpt-test",
    )


def function_call(call_id, name, arguments):
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


def make_transport(create):
    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    return OpenAITransport(model="gpt-test", client=client)


def status_error(cls, status, headers=None):
    response = httpx.Response(status, headers=headers or {}, request=REQUEST)
    return cls("failure", response=response, body=None)


def test_to_openai_messages_orders_tool_results_first():
    history = [
        Message.user("weather?"),
        Message(
            role=MessageRole.ASSISTANT,
            content=[ToolUseBlock(id="call_1", name="lookup", input=b'{"city": "Oslo"}')],
        ),
        Message(
            role=MessageRole.USER,
            content=[
                ToolResultBlock(tool_call_id="call_1", name="lookup", content="rainy"),
                *Message.user("and tomorrow?").content,
            ],
        ),
    ]

    converted = to_openai_messages(history, system_prompt="Be brief")

    assert [m["role"] for m in converted] == ["system", "user", "assistant", "tool", "user"]
    assert converted[2]["content"] is None
    assert converted[2]["tool_calls"][0]["function"] == {
        "name": "lookup",
        "arguments": '{"city": "Oslo"}',
    }
    assert converted[3] == {"role": "tool", "tool_call_id": "call_1", "content": "rainy"}


def test_from_openai_completion_maps_tool_calls_and_usage():
    result = from_openai_completion(
        completion(
            content="Checking",
            tool_calls=[function_call("call_9", "lookup", '{"city":"Rome"}')],
            finish_reason="tool_calls",
            usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15),
        )
    )

    assert result.stop_reason == StopReason.TOOL_USE
    assert result.text() == "Checking"
    assert result.tool_calls()[0].arguments == b'{"city":"Rome"}'
    assert result.usage.total_tokens == 15


@pytest.mark.parametrize(
    "finish_reason,expected",
    [
        ("stop", StopReason.END_TURN),
        ("length", StopReason.MAX_TOKENS),
        ("content_filter", None),
    ],
)
def test_finish_reason_mapping(finish_reason, expected):
    assert from_openai_completion(completion("x", finish_reason=finish_reason)).stop_reason == expected


def test_completion_without_choices_is_an_error():
    with pytest.raises(EmptyResponseError):
        from_openai_completion(SimpleNamespace(choices=[], usage=None, model="gpt-test"))


def test_convert_openai_error():
    rate_limited = convert_openai_error(
        status_error(openai.RateLimitError, 429, {"retry-after": "3"})
    )
    assert isinstance(rate_limited, RateLimitError)
    assert rate_limited.rate_limit_info.retry_after == 3.0

    assert isinstance(convert_openai_error(openai.APITimeoutError(request=REQUEST)), LLMTimeoutError)
    assert isinstance(
        convert_openai_error(openai.APIConnectionError(request=REQUEST)), NetworkError
    )

    auth = convert_openai_error(status_error(openai.AuthenticationError, 401))
    assert isinstance(auth, AuthenticationError)
    assert not auth.is_retryable

    server = convert_openai_error(status_error(openai.InternalServerError, 503))
    assert isinstance(server, ServerError)
    assert server.is_retryable


def test_build_params_with_tools_and_schema():
    transport = make_transport(AsyncMock())
    request = ModelRequest(
        messages=[Message.user("hi")],
        tools=[ToolDefinition(name="lookup", description="Look up")],
        output_schema={"type": "object"},
        output_schema_name="Answer",
        model="gpt-override",
    )

    params = transport.build_params(request)

    assert params["model"] == "gpt-override"
    assert params["tools"][0]["function"]["name"] == "lookup"
    assert params["response_format"]["json_schema"]["name"] == "Answer"


@pytest.mark.asyncio
async def test_send_returns_response():
    create = AsyncMock(return_value=completion("Hello"))
    transport = make_transport(create)

    response = await transport.send(ModelRequest(messages=[Message.user("hi")]))

    assert response.text() == "Hello"
    assert create.call_args.kwargs["model"] == "gpt-test"
    assert "tools" not in create.call_args.kwargs


@pytest.mark.asyncio
async def test_send_failure_is_logged_and_converted():
    create = AsyncMock(side_effect=status_error(openai.InternalServerError, 500))
    transport = make_transport(create)
    request = ModelRequest(messages=[Message.user("test")])

    with patch("agentloop.llm.openai.logger") as mock_logger:
        with pytest.raises(ServerError) as exc_info:
            await transport.send(request)

    assert isinstance(exc_info.value.__cause__, openai.InternalServerError)
    assert mock_logger.error.called
    call_args = mock_logger.error.call_args
    assert call_args[0][0] == "llm_request_failed"
    kwargs = call_args[1]
    assert kwargs["error_type"] == "InternalServerError"
    assert kwargs["messages_count"] == 1
