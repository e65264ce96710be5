"""
Tool decorator
"""

from typing import Callable, overload

from .local import FunctionTool


@overload
def tool(func: Callable) -> FunctionTool: ...


@overload
def tool(
    *, name: str | None = None, description: str | None = None
) -> Callable[[Callable], FunctionTool]: ...


def tool(func=None, *, name=None, description=None):
    """
    Decorator to convert a function into a FunctionTool.

    Usable bare (`@tool`) or with overrides (`@tool(name="add")`).
    """
    if func is not None:
        return FunctionTool(func)

    def wrap(f: Callable) -> FunctionTool:
        return FunctionTool(f, name=name, description=description)

    return wrap
