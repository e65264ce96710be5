"""
Conversation models shared by the loop, the transports and the tool set.

Messages are provider neutral: a message is a role plus a list of content
blocks. Transports translate them to their vendor format.
"""

import json
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class MessageRole(str, Enum):
    """Conversation roles. Tool results travel in user-role messages."""

    USER = "user"
    ASSISTANT = "assistant"


class StopReason(str, Enum):
    """Why the model stopped generating."""

    END_TURN = "end_turn"
    TOOL_USE = "tool_use"
    MAX_TOKENS = "max_tokens"
    STOP_SEQUENCE = "stop_sequence"


class TextBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ToolUseBlock(BaseModel):
    """A tool invocation requested by the model. `input` holds the raw JSON arguments."""

    model_config = ConfigDict(frozen=True)

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: bytes = b"{}"


class ToolResultBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["tool_result"] = "tool_result"
    tool_call_id: str
    name: str
    content: str
    is_error: bool = False


ContentBlock = Annotated[
    Union[TextBlock, ToolUseBlock, ToolResultBlock],
    Field(discriminator="type"),
]


class Message(BaseModel):
    """One entry of the conversation history."""

    role: MessageRole
    content: list[ContentBlock] = Field(default_factory=list)

    @classmethod
    def user(cls, text: str) -> "Message":
        return cls(role=MessageRole.USER, content=[TextBlock(text=text)])

    @classmethod
    def assistant(cls, text: str) -> "Message":
        return cls(role=MessageRole.ASSISTANT, content=[TextBlock(text=text)])

    def text(self) -> str:
        return "".join(b.text for b in self.content if isinstance(b, TextBlock))

    def tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.content if isinstance(b, ToolUseBlock)]

    def tool_results(self) -> list[ToolResultBlock]:
        return [b for b in self.content if isinstance(b, ToolResultBlock)]

    def has_text(self) -> bool:
        return any(isinstance(b, TextBlock) and b.text for b in self.content)


class ToolDefinition(BaseModel):
    """Tool catalog entry sent to the model. `parameters` is a JSON Schema object."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


class Usage(BaseModel):
    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None


class ToolCallInfo(BaseModel):
    """A model-requested tool invocation."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    arguments: bytes = b"{}"

    def decode_arguments(self, model: type[BaseModel] | None = None) -> Any:
        """Decode the raw JSON arguments, optionally validating into a pydantic model."""
        if model is not None:
            return model.model_validate_json(self.arguments or b"{}")
        return json.loads(self.arguments or b"{}")


class ToolResultInfo(BaseModel):
    """Outcome of executing a tool call."""

    model_config = ConfigDict(frozen=True)

    tool_call_id: str
    name: str
    content: str
    is_error: bool = False

    def to_block(self) -> ToolResultBlock:
        return ToolResultBlock(
            tool_call_id=self.tool_call_id,
            name=self.name,
            content=self.content,
            is_error=self.is_error,
        )


class LLMResponse(BaseModel):
    """One model response: content blocks, stop reason and usage."""

    content: list[ContentBlock] = Field(default_factory=list)
    stop_reason: StopReason | None = None
    usage: Usage | None = None
    model: str | None = None

    def tool_calls(self) -> list[ToolCallInfo]:
        """Tool-call requests embedded in the content, whatever the stop reason says."""
        return [
            ToolCallInfo(id=b.id, name=b.name, arguments=b.input)
            for b in self.content
            if isinstance(b, ToolUseBlock)
        ]

    def text(self) -> str | None:
        """Concatenated text content, or None when there is none."""
        text = "".join(b.text for b in self.content if isinstance(b, TextBlock))
        return text or None

    def to_message(self) -> Message | None:
        """History entry for this response. Empty text blocks are dropped."""
        blocks = [
            b for b in self.content
            if isinstance(b, ToolUseBlock) or (isinstance(b, TextBlock) and b.text)
        ]
        if not blocks:
            return None
        return Message(role=MessageRole.ASSISTANT, content=blocks)


__all__ = [
    "MessageRole",
    "StopReason",
    "TextBlock",
    "ToolUseBlock",
    "ToolResultBlock",
    "ContentBlock",
    "Message",
    "ToolDefinition",
    "Usage",
    "ToolCallInfo",
    "ToolResultInfo",
    "LLMResponse",
]
