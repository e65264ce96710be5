from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from agentloop.domain import ToolDefinition


class BaseTool(ABC):
    name: str
    description: str
    args_schema: type[BaseModel] | None = None

    @abstractmethod
    async def execute(self, **kwargs) -> Any:
        """Run the tool with already-decoded keyword arguments."""
        pass

    def parameters_schema(self) -> dict:
        if not self.args_schema:
            return {"type": "object", "properties": {}}

        schema = self.args_schema.model_json_schema()
        schema.pop("title", None)
        return schema

    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.parameters_schema(),
        )

    def to_openai_schema(self) -> dict:
        """OpenAI Function Calling format"""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters_schema(),
            },
        }
