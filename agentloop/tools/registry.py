"""
ToolSet - name to tool resolution and execution against raw JSON arguments.

Provides:
- Tool registration (tool instances or plain functions)
- Tool catalog for the model (ToolDefinition list)
- Execution from argument bytes, returning a ToolResult
"""

from __future__ import annotations

import json
import time
from typing import Any, Callable, Iterable

from pydantic import BaseModel

from agentloop.domain import ToolDefinition, ToolExecutionError, ToolNotFoundError
from agentloop.tools.base import BaseTool
from agentloop.tools.local import FunctionTool
from agentloop.utils.logging import get_logger

logger = get_logger(__name__)


class ToolResult(BaseModel):
    content: str  # What the model sees
    is_error: bool = False
    duration: float | None = None

    @classmethod
    def error(cls, message: str) -> "ToolResult":
        return cls(content=message, is_error=True)


def stringify_output(output: Any) -> str:
    """Render a tool's return value as the text handed back to the model."""
    if output is None:
        return ""
    if isinstance(output, str):
        return output
    if isinstance(output, BaseModel):
        return output.model_dump_json()
    try:
        return json.dumps(output, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(output)


class ToolSet:
    """
    Registry of the tools available to one agent.

    Treated as read-only once a run starts; safe to share across runs.
    """

    def __init__(self, tools: Iterable[BaseTool | Callable] | None = None) -> None:
        self._tools: dict[str, BaseTool] = {}
        for t in tools or []:
            self.register(t)

    def register(self, tool: BaseTool | Callable) -> BaseTool:
        """Register a tool instance, or wrap a function as a FunctionTool."""
        if not isinstance(tool, BaseTool):
            tool = FunctionTool(tool)
        if tool.name in self._tools:
            logger.warning("tool_overridden", tool_name=tool.name)
        self._tools[tool.name] = tool
        return tool

    def unregister(self, name: str) -> bool:
        return self._tools.pop(name, None) is not None

    def appending(self, *tools: BaseTool | Callable) -> "ToolSet":
        """Copy of this set with extra tools."""
        return ToolSet([*self._tools.values(), *tools])

    def get(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def definitions(self) -> list[ToolDefinition]:
        return [t.definition() for t in self._tools.values()]

    def is_empty(self) -> bool:
        return not self._tools

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self):
        return iter(self._tools.values())

    async def execute(self, name: str, arguments: bytes | str | None) -> ToolResult:
        """
        Execute a tool by name.

        Raises:
            ToolNotFoundError: name is not registered
            ValueError: arguments are not a JSON object
            pydantic.ValidationError: arguments do not match the tool's schema
            ToolExecutionError: the tool raised
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)

        args = self._decode_arguments(arguments)
        if tool.args_schema is not None:
            validated = tool.args_schema.model_validate(args)
            args = {k: getattr(validated, k) for k in tool.args_schema.model_fields}

        start_time = time.time()
        logger.debug("executing_tool", tool_name=name)
        try:
            output = await tool.execute(**args)
        except Exception as e:
            raise ToolExecutionError(name, e) from e
        duration = time.time() - start_time

        if isinstance(output, ToolResult):
            result = output.model_copy(update={"duration": duration})
        else:
            result = ToolResult(content=stringify_output(output), duration=duration)

        logger.debug(
            "tool_execution_completed",
            tool_name=name,
            is_error=result.is_error,
            duration=duration,
        )
        return result

    @staticmethod
    def _decode_arguments(arguments: bytes | str | None) -> dict[str, Any]:
        if not arguments:
            return {}
        try:
            decoded = json.loads(arguments)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON arguments: {e}") from e
        if decoded is None:
            return {}
        if not isinstance(decoded, dict):
            raise ValueError("Tool arguments must be a JSON object")
        return decoded


__all__ = ["ToolSet", "ToolResult", "stringify_output"]
