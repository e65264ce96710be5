"""Transport errors raised by TransportClient implementations."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from agentloop.llm.retry import RateLimitInfo


class LLMError(Exception):
    """Base exception for LLM transport errors."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        rate_limit_info: "RateLimitInfo | None" = None,
    ):
        self.message = message
        self.status_code = status_code
        self.rate_limit_info = rate_limit_info
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self.retryable


class RateLimitError(LLMError):
    retryable = True

    def __init__(self, message: str = "Rate limit exceeded", rate_limit_info=None):
        super().__init__(message, status_code=429, rate_limit_info=rate_limit_info)


class ServerError(LLMError):
    def __init__(self, status_code: int, message: str = "Server error"):
        super().__init__(f"{message} ({status_code})", status_code=status_code)

    @property
    def is_retryable(self) -> bool:
        return self.status_code is not None and 500 <= self.status_code <= 599


class LLMTimeoutError(LLMError):
    retryable = True

    def __init__(self, message: str = "Request timed out"):
        super().__init__(message)


class NetworkError(LLMError):
    retryable = True


class AuthenticationError(LLMError):
    pass


class InvalidRequestError(LLMError):
    pass


class ModelNotFoundError(LLMError):
    pass


class EmptyResponseError(LLMError):
    def __init__(self, message: str = "Model returned no choices"):
        super().__init__(message)


__all__ = [
    "LLMError",
    "RateLimitError",
    "ServerError",
    "LLMTimeoutError",
    "NetworkError",
    "AuthenticationError",
    "InvalidRequestError",
    "ModelNotFoundError",
    "EmptyResponseError",
]
