"""
Step protocol for pull-based loop execution.

An AgentStep is one externally observable unit of progress. The consumer of a
StepStream receives exactly one AgentStep per pull.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from .models import LLMResponse, ToolCallInfo, ToolResultInfo


class StepType(str, Enum):
    """Step variants"""

    USER_MESSAGE = "user_message"
    THINKING = "thinking"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    INTERRUPTED = "interrupted"
    ASKING_USER = "asking_user"
    AWAITING_USER_INPUT = "awaiting_user_input"
    TEXT_RESPONSE = "text_response"
    FINAL_RESPONSE = "final_response"

    # Conversational sessions only
    CANCELLED = "cancelled"


class AgentStep(BaseModel):
    """
    Tagged step value.

    Only the payload field matching `type` is populated:

    - USER_MESSAGE, INTERRUPTED, TEXT_RESPONSE: text
    - THINKING: response
    - TOOL_CALL: tool_call
    - TOOL_RESULT: tool_result
    - ASKING_USER, AWAITING_USER_INPUT: question
    - FINAL_RESPONSE: output
    - CANCELLED: text (cancellation reason)
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    type: StepType

    text: str | None = None
    response: LLMResponse | None = None
    tool_call: ToolCallInfo | None = None
    tool_result: ToolResultInfo | None = None
    question: str | None = None
    output: Any = None

    @classmethod
    def user_message(cls, text: str) -> "AgentStep":
        return cls(type=StepType.USER_MESSAGE, text=text)

    @classmethod
    def thinking(cls, response: LLMResponse) -> "AgentStep":
        return cls(type=StepType.THINKING, response=response)

    @classmethod
    def tool_call_step(cls, call: ToolCallInfo) -> "AgentStep":
        return cls(type=StepType.TOOL_CALL, tool_call=call)

    @classmethod
    def tool_result_step(cls, result: ToolResultInfo) -> "AgentStep":
        return cls(type=StepType.TOOL_RESULT, tool_result=result)

    @classmethod
    def interrupted(cls, text: str) -> "AgentStep":
        return cls(type=StepType.INTERRUPTED, text=text)

    @classmethod
    def asking_user(cls, question: str) -> "AgentStep":
        return cls(type=StepType.ASKING_USER, question=question)

    @classmethod
    def awaiting_user_input(cls, question: str) -> "AgentStep":
        return cls(type=StepType.AWAITING_USER_INPUT, question=question)

    @classmethod
    def text_response(cls, text: str) -> "AgentStep":
        return cls(type=StepType.TEXT_RESPONSE, text=text)

    @classmethod
    def final_response(cls, output: Any) -> "AgentStep":
        return cls(type=StepType.FINAL_RESPONSE, output=output)

    @classmethod
    def cancelled(cls, reason: str | None = None) -> "AgentStep":
        return cls(type=StepType.CANCELLED, text=reason)

    def __str__(self) -> str:
        if self.type == StepType.TOOL_CALL and self.tool_call:
            return f"tool_call({self.tool_call.name})"
        if self.type == StepType.TOOL_RESULT and self.tool_result:
            return f"tool_result({self.tool_result.name}: {self.tool_result.content[:50]})"
        if self.type == StepType.THINKING and self.response:
            return f"thinking({(self.response.text() or '')[:50]})"
        if self.type == StepType.FINAL_RESPONSE:
            return f"final_response({self.output!r})"
        if self.question is not None:
            return f"{self.type.value}({self.question[:50]})"
        if self.text is not None:
            return f"{self.type.value}({self.text[:50]})"
        return self.type.value


__all__ = ["StepType", "AgentStep"]
