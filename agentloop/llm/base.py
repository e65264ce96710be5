"""
Transport abstraction layer - one request, one response.

Responsibilities:
- Carry a full conversation turn to a model provider
- Return a provider-neutral LLMResponse

Does NOT handle:
- Tool loop logic
- Termination decisions
- Retries (see RetryingTransport)
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from agentloop.domain import LLMResponse, Message, ToolDefinition


class ModelRequest(BaseModel):
    """Everything a transport needs for one model call."""

    messages: list[Message] = Field(default_factory=list)
    tools: list[ToolDefinition] | None = Field(
        default=None, description="Tool catalog; None means tools are withheld"
    )
    output_schema: dict[str, Any] | None = Field(
        default=None, description="JSON Schema the final answer must satisfy"
    )
    output_schema_name: str | None = None
    system_prompt: str | None = None
    model: str | None = Field(default=None, description="Model override for this call")


class TransportClient(ABC):
    """
    Unified transport interface.

    Implementations raise LLMError subclasses for every provider failure.
    """

    @abstractmethod
    async def send(self, request: ModelRequest) -> LLMResponse:
        """Send one request and return the model's complete response."""
        pass


__all__ = ["ModelRequest", "TransportClient"]
