"""
OpenAI transport - chat completions through the official SDK.
"""

import json
import os
from typing import Any

try:
    import openai
    from openai import AsyncOpenAI
except ImportError:
    raise ImportError("Please install openai package: pip install openai")

from agentloop.domain import (
    LLMResponse,
    Message,
    MessageRole,
    StopReason,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    Usage,
)
from agentloop.llm.base import ModelRequest, TransportClient
from agentloop.llm.errors import (
    AuthenticationError,
    EmptyResponseError,
    InvalidRequestError,
    LLMError,
    LLMTimeoutError,
    ModelNotFoundError,
    NetworkError,
    RateLimitError,
    ServerError,
)
from agentloop.llm.retry import RateLimitInfo
from agentloop.utils.logging import get_logger

logger = get_logger(__name__)

FINISH_REASONS = {
    "stop": StopReason.END_TURN,
    "tool_calls": StopReason.TOOL_USE,
    "function_call": StopReason.TOOL_USE,
    "length": StopReason.MAX_TOKENS,
}


def to_openai_messages(messages: list[Message], system_prompt: str | None = None) -> list[dict]:
    """Convert provider-neutral history to OpenAI chat messages."""
    result: list[dict] = []
    if system_prompt:
        result.append({"role": "system", "content": system_prompt})

    for msg in messages:
        if msg.role == MessageRole.ASSISTANT:
            entry: dict[str, Any] = {"role": "assistant", "content": msg.text() or None}
            tool_uses = msg.tool_uses()
            if tool_uses:
                entry["tool_calls"] = [
                    {
                        "id": block.id,
                        "type": "function",
                        "function": {
                            "name": block.name,
                            "arguments": block.input.decode("utf-8") or "{}",
                        },
                    }
                    for block in tool_uses
                ]
            result.append(entry)
            continue

        # Tool results must directly follow the assistant message that requested them
        for block in msg.tool_results():
            result.append(
                {"role": "tool", "tool_call_id": block.tool_call_id, "content": block.content}
            )
        if msg.has_text():
            result.append({"role": "user", "content": msg.text()})

    return result


def from_openai_completion(completion: Any) -> LLMResponse:
    """Convert a ChatCompletion into an LLMResponse."""
    if not completion.choices:
        raise EmptyResponseError()

    choice = completion.choices[0]
    message = choice.message
    content: list[TextBlock | ToolUseBlock] = []

    if message.content:
        content.append(TextBlock(text=message.content))
    for tc in message.tool_calls or []:
        arguments = tc.function.arguments or "{}"
        content.append(
            ToolUseBlock(id=tc.id, name=tc.function.name, input=arguments.encode("utf-8"))
        )

    usage = None
    if completion.usage is not None:
        usage = Usage(
            input_tokens=completion.usage.prompt_tokens,
            output_tokens=completion.usage.completion_tokens,
            total_tokens=completion.usage.total_tokens,
        )

    return LLMResponse(
        content=content,
        stop_reason=FINISH_REASONS.get(choice.finish_reason),
        usage=usage,
        model=completion.model,
    )


def convert_openai_error(e: Exception) -> LLMError:
    """Map SDK exceptions onto the LLMError hierarchy."""
    if isinstance(e, openai.RateLimitError):
        headers = getattr(e.response, "headers", None)
        return RateLimitError(str(e), rate_limit_info=RateLimitInfo.from_headers(headers))
    # APITimeoutError subclasses APIConnectionError
    if isinstance(e, openai.APITimeoutError):
        return LLMTimeoutError(str(e))
    if isinstance(e, openai.APIConnectionError):
        return NetworkError(str(e))
    if isinstance(e, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return AuthenticationError(str(e), status_code=e.status_code)
    if isinstance(e, openai.NotFoundError):
        return ModelNotFoundError(str(e), status_code=e.status_code)
    if isinstance(e, (openai.BadRequestError, openai.UnprocessableEntityError)):
        return InvalidRequestError(str(e), status_code=e.status_code)
    if isinstance(e, openai.APIStatusError):
        if e.status_code >= 500:
            return ServerError(e.status_code, str(e))
        return LLMError(str(e), status_code=e.status_code)
    return LLMError(str(e))


class OpenAITransport(TransportClient):
    """
    Non-streaming chat completions transport.

    Works with any OpenAI-compatible endpoint via base_url.
    """

    def __init__(
        self,
        model: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        timeout: float | None = None,
    ):
        from agentloop.config import settings

        self.model = model or settings.default_model
        self.temperature = temperature
        self.max_tokens = max_tokens

        if client is None:
            # Resolve API Key: argument > config > env
            resolved_api_key = api_key
            if resolved_api_key is None and settings.openai_api_key:
                resolved_api_key = settings.openai_api_key.get_secret_value()
            if resolved_api_key is None:
                resolved_api_key = os.getenv("OPENAI_API_KEY")

            client = AsyncOpenAI(
                api_key=resolved_api_key,
                base_url=base_url or settings.openai_base_url or os.getenv("OPENAI_BASE_URL"),
                timeout=timeout or settings.request_timeout,
                # Retries are owned by RetryExecutor
                max_retries=0,
            )
        self.client = client

    def build_params(self, request: ModelRequest) -> dict[str, Any]:
        params: dict[str, Any] = {
            "model": request.model or self.model,
            "messages": to_openai_messages(request.messages, request.system_prompt),
        }
        if self.temperature is not None:
            params["temperature"] = self.temperature
        if self.max_tokens:
            params["max_tokens"] = self.max_tokens

        if request.tools:
            params["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": t.name,
                        "description": t.description,
                        "parameters": t.parameters,
                    },
                }
                for t in request.tools
            ]

        if request.output_schema is not None:
            params["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": request.output_schema_name or "output",
                    "schema": request.output_schema,
                },
            }
        return params

    async def send(self, request: ModelRequest) -> LLMResponse:
        params = self.build_params(request)

        logger.info(
            "llm_request",
            model=params["model"],
            messages_count=len(params["messages"]),
            tools_count=len(params.get("tools", [])),
            structured_output="response_format" in params,
        )
        logger.debug("llm_request_detail", detail=json.dumps(params, ensure_ascii=False))

        try:
            completion = await self.client.chat.completions.create(**params)
        except openai.OpenAIError as e:
            logger.error(
                "llm_request_failed",
                model=params["model"],
                error=str(e),
                error_type=type(e).__name__,
                messages_count=len(params["messages"]),
            )
            raise convert_openai_error(e) from e

        response = from_openai_completion(completion)
        logger.debug(
            "llm_response",
            model=response.model,
            stop_reason=response.stop_reason.value if response.stop_reason else None,
            tool_calls=len(response.tool_calls()),
            usage=response.usage.model_dump() if response.usage else None,
        )
        return response


__all__ = [
    "OpenAITransport",
    "to_openai_messages",
    "from_openai_completion",
    "convert_openai_error",
]
