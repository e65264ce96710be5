import pytest
from pydantic import BaseModel, ValidationError

from agentloop.domain import ToolExecutionError, ToolNotFoundError
from agentloop.tools import AskUserTool, BaseTool, FunctionTool, ToolResult, ToolSet, tool


class Forecast(BaseModel):
    city: str
    celsius: int


@tool
def weather(city: str, days: int = 1) -> Forecast:
    """Get the weather forecast for a city."""
    return Forecast(city=city, celsius=20 + days)


@tool(name="sum_numbers", description="Add numbers")
async def add_all(numbers: list[int]) -> int:
    return sum(numbers)


class FailingTool(BaseTool):
    name = "failing"
    description = "Always fails"

    async def execute(self, **kwargs):
        raise ValueError("Intentional failure")


class SoftErrorTool(BaseTool):
    name = "soft_error"
    description = "Reports an error as a value"

    async def execute(self, **kwargs):
        return ToolResult.error("quota exhausted")


def test_function_tool_schema_from_signature():
    definition = weather.definition()

    assert definition.name == "weather"
    assert definition.description == "Get the weather forecast for a city."
    assert definition.parameters["required"] == ["city"]
    assert set(definition.parameters["properties"]) == {"city", "days"}
    assert "title" not in definition.parameters


def test_decorator_overrides_name_and_description():
    assert isinstance(add_all, FunctionTool)
    assert add_all.name == "sum_numbers"
    assert add_all.description == "Add numbers"


def test_openai_schema_format():
    schema = weather.to_openai_schema()
    assert schema["type"] == "function"
    assert schema["function"]["name"] == "weather"


@pytest.mark.asyncio
async def test_execute_serializes_outputs():
    tools = ToolSet([weather, add_all])

    model_result = await tools.execute("weather", b'{"city": "Oslo", "days": 2}')
    int_result = await tools.execute("sum_numbers", '{"numbers": [1, 2, 3]}')

    assert model_result.content == '{"city":"Oslo","celsius":22}'
    assert int_result.content == "6"
    assert not model_result.is_error
    assert model_result.duration is not None


@pytest.mark.asyncio
async def test_execute_unknown_tool_raises():
    with pytest.raises(ToolNotFoundError) as exc_info:
        await ToolSet().execute("nope", b"{}")
    assert exc_info.value.name == "nope"


@pytest.mark.asyncio
async def test_execute_wraps_tool_exceptions():
    with pytest.raises(ToolExecutionError) as exc_info:
        await ToolSet([FailingTool()]).execute("failing", b"{}")
    assert isinstance(exc_info.value.cause, ValueError)


@pytest.mark.asyncio
async def test_execute_rejects_bad_arguments():
    tools = ToolSet([weather])

    with pytest.raises(ValueError):
        await tools.execute("weather", b"{not json")
    with pytest.raises(ValueError):
        await tools.execute("weather", b"[1, 2]")
    with pytest.raises(ValidationError):
        await tools.execute("weather", b'{"days": 3}')


@pytest.mark.asyncio
async def test_tool_can_return_error_result():
    result = await ToolSet([SoftErrorTool()]).execute("soft_error", None)

    assert result.is_error
    assert result.content == "quota exhausted"


def test_plain_functions_are_wrapped():
    def ping() -> str:
        return "pong"

    tools = ToolSet([ping])

    assert "ping" in tools
    assert isinstance(tools.get("ping"), FunctionTool)
    assert [d.name for d in tools.definitions()] == ["ping"]


def test_appending_returns_new_set():
    base = ToolSet([weather])
    extended = base.appending(AskUserTool())

    assert len(base) == 1
    assert len(extended) == 2
    assert extended.names() == ["weather", "ask_user"]
    assert not extended.is_empty()
    assert ToolSet().is_empty()


def test_ask_user_schema_requires_question():
    definition = AskUserTool().definition()
    assert definition.parameters["required"] == ["question"]
