from pydantic import BaseModel, Field

from agentloop.tools.base import BaseTool

ASK_USER_TOOL_NAME = "ask_user"


class AskUserArgs(BaseModel):
    question: str = Field(
        description=(
            "The question to ask the user. Be specific and clear about what "
            "information you need."
        )
    )


class AskUserTool(BaseTool):
    """
    Lets the model ask the user a question.

    A conversational session intercepts calls to this tool and pauses until the
    user replies, so execute() only runs when the tool is used outside a session.
    """

    name = ASK_USER_TOOL_NAME
    description = (
        "Ask the user a question to gather additional information. Use this tool "
        "when you need clarification, lack sufficient information to proceed, or "
        "want to confirm the user's intent before taking action."
    )
    args_schema = AskUserArgs

    async def execute(self, **kwargs) -> str:
        return "Waiting for user response..."


__all__ = ["AskUserTool", "AskUserArgs", "ASK_USER_TOOL_NAME"]
