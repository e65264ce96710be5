"""
AgentContext - conversation history plus what a run needs to build requests.
"""

from typing import Iterable

from agentloop.config import AgentConfiguration
from agentloop.domain import (
    LLMResponse,
    Message,
    MessageRole,
    ToolResultBlock,
    ToolResultInfo,
)
from agentloop.tools import ToolSet
from agentloop.utils.logging import get_logger

logger = get_logger(__name__)

FINAL_OUTPUT_REQUEST = "Please provide your final response in the required JSON format."
INTERRUPTED_TOOL_RESULT = "Session was interrupted. Continuing from where we left off."


class AgentContext:
    """
    Mutable conversation state owned by one runner or session.

    Tool results are appended as user-role messages, one message per batch.
    """

    def __init__(
        self,
        tools: ToolSet | None = None,
        system_prompt: str | None = None,
        config: AgentConfiguration | None = None,
        messages: Iterable[Message] | None = None,
    ):
        self.tools = tools or ToolSet()
        self.system_prompt = system_prompt
        self.config = config or AgentConfiguration()
        self._messages: list[Message] = list(messages or [])

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def add_message(self, message: Message) -> None:
        self._messages.append(message)

    def add_user_message(self, text: str) -> None:
        self._messages.append(Message.user(text))

    def add_assistant_response(self, response: LLMResponse) -> None:
        message = response.to_message()
        if message is not None:
            self._messages.append(message)

    def add_tool_results(self, results: Iterable[ToolResultInfo]) -> None:
        blocks = [r.to_block() for r in results]
        if blocks:
            self._messages.append(Message(role=MessageRole.USER, content=blocks))

    def add_final_output_request(self) -> None:
        self.add_user_message(FINAL_OUTPUT_REQUEST)

    def add_decode_retry_request(self, error: Exception | str) -> None:
        self.add_user_message(
            f"Your previous response could not be parsed as the required output: {error}. "
            f"{FINAL_OUTPUT_REQUEST}"
        )

    def pending_tool_uses(self) -> list[tuple[str, str]]:
        """(id, name) of tool calls in history that never received a result."""
        pending: dict[str, str] = {}
        for message in self._messages:
            if message.role == MessageRole.ASSISTANT:
                for block in message.tool_uses():
                    pending[block.id] = block.name
            else:
                for block in message.tool_results():
                    pending.pop(block.tool_call_id, None)
        return list(pending.items())

    def repair_incomplete_tool_uses(self) -> int:
        """Give every unanswered tool call a placeholder result. Returns how many were repaired."""
        pending = self.pending_tool_uses()
        if not pending:
            return 0
        self._messages.append(
            Message(
                role=MessageRole.USER,
                content=[
                    ToolResultBlock(tool_call_id=call_id, name=name, content=INTERRUPTED_TOOL_RESULT)
                    for call_id, name in pending
                ],
            )
        )
        logger.info("history_repaired", tool_calls=len(pending))
        return len(pending)

    def clear(self) -> None:
        self._messages.clear()


__all__ = ["AgentContext", "FINAL_OUTPUT_REQUEST", "INTERRUPTED_TOOL_RESULT"]
