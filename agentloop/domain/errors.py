"""Agent loop exceptions."""


class AgentLoopError(Exception):
    """Base exception for agent loop errors."""

    pass


class StepLimitExceededError(AgentLoopError):
    """The run tried to go past max_steps."""

    def __init__(self, steps: int):
        self.steps = steps
        super().__init__(f"Agent exceeded maximum steps limit ({steps})")


class OutputDecodingError(AgentLoopError):
    """The final output could not be decoded after the allowed retries."""

    def __init__(self, cause: Exception | str, raw_text: str | None = None):
        self.cause = cause
        self.raw_text = raw_text
        super().__init__(f"Failed to decode output: {cause}")


class ToolNotFoundError(AgentLoopError):
    """No tool is registered under the requested name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tool not found: {name}")


class ToolExecutionError(AgentLoopError):
    """A tool raised while executing."""

    def __init__(self, name: str, cause: Exception):
        self.name = name
        self.cause = cause
        super().__init__(f"Tool execution failed ({name}): {cause}")


class InvalidStateError(AgentLoopError):
    """An operation was attempted in a state that does not allow it."""

    def __init__(self, message: str):
        super().__init__(f"Invalid agent state: {message}")


class SessionAlreadyRunningError(AgentLoopError):
    """A conversational session was asked to start a second concurrent run."""

    def __init__(self) -> None:
        super().__init__("Session is already running")


__all__ = [
    "AgentLoopError",
    "StepLimitExceededError",
    "OutputDecodingError",
    "ToolNotFoundError",
    "ToolExecutionError",
    "InvalidStateError",
    "SessionAlreadyRunningError",
]
