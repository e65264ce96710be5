import inspect
from typing import Any, Callable, get_type_hints

from pydantic import BaseModel, create_model

from agentloop.tools.base import BaseTool


class FunctionTool(BaseTool):
    """Wrap a plain or async function as a tool. Arguments come from its signature."""

    def __init__(self, func: Callable, name: str | None = None, description: str | None = None):
        self.func = func
        self.name = name or func.__name__
        self.description = description or inspect.getdoc(func) or ""
        self.args_schema = self._create_args_schema(func)

    def _create_args_schema(self, func: Callable) -> type[BaseModel]:
        """Dynamically create a Pydantic model from function signature."""
        sig = inspect.signature(func)
        type_hints = get_type_hints(func)

        fields = {}
        for param_name, param in sig.parameters.items():
            if param_name == "self" or param_name == "cls":
                continue

            annotation = type_hints.get(param_name, Any)
            default = param.default

            if default == inspect.Parameter.empty:
                fields[param_name] = (annotation, ...)
            else:
                fields[param_name] = (annotation, default)

        return create_model(f"{self.name}Args", **fields)

    async def execute(self, **kwargs) -> Any:
        if inspect.iscoroutinefunction(self.func):
            return await self.func(**kwargs)
        return self.func(**kwargs)


__all__ = ["FunctionTool"]
