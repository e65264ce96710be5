"""
Tools - registry, function tools and the built-in ask_user tool.
"""

from agentloop.tools.ask_user import ASK_USER_TOOL_NAME, AskUserArgs, AskUserTool
from agentloop.tools.base import BaseTool
from agentloop.tools.decorator import tool
from agentloop.tools.local import FunctionTool
from agentloop.tools.registry import ToolResult, ToolSet, stringify_output

__all__ = [
    "ASK_USER_TOOL_NAME",
    "AskUserArgs",
    "AskUserTool",
    "BaseTool",
    "FunctionTool",
    "ToolResult",
    "ToolSet",
    "stringify_output",
    "tool",
]
