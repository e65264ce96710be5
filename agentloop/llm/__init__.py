"""
LLM transport layer.

The OpenAI transport is imported lazily so the openai SDK is only needed
when it is actually used.
"""

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
from agentloop.llm.retry import (
    ExponentialBackoffPolicy,
    NoRetryPolicy,
    RateLimitInfo,
    RetryEvent,
    RetryExecutor,
    RetryingTransport,
    RetryPolicy,
)


def __getattr__(name: str):
    if name == "OpenAITransport":
        from agentloop.llm.openai import OpenAITransport

        return OpenAITransport
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "ModelRequest",
    "TransportClient",
    "LLMError",
    "RateLimitError",
    "ServerError",
    "LLMTimeoutError",
    "NetworkError",
    "AuthenticationError",
    "InvalidRequestError",
    "ModelNotFoundError",
    "EmptyResponseError",
    "RateLimitInfo",
    "RetryPolicy",
    "ExponentialBackoffPolicy",
    "NoRetryPolicy",
    "RetryEvent",
    "RetryExecutor",
    "RetryingTransport",
    "OpenAITransport",
]
