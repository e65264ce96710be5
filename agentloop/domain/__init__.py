"""
Domain module - Pure data models with no runtime dependencies.
"""

# Models
from .models import (
    ContentBlock,
    LLMResponse,
    Message,
    MessageRole,
    StopReason,
    TextBlock,
    ToolCallInfo,
    ToolResultBlock,
    ToolResultInfo,
    ToolDefinition,
    ToolUseBlock,
    Usage,
)

# Steps
from .step import AgentStep, StepType

# Errors
from .errors import (
    AgentLoopError,
    InvalidStateError,
    OutputDecodingError,
    SessionAlreadyRunningError,
    StepLimitExceededError,
    ToolExecutionError,
    ToolNotFoundError,
)

__all__ = [
    # Models
    "ContentBlock",
    "LLMResponse",
    "Message",
    "MessageRole",
    "StopReason",
    "TextBlock",
    "ToolCallInfo",
    "ToolResultBlock",
    "ToolResultInfo",
    "ToolDefinition",
    "ToolUseBlock",
    "Usage",
    # Steps
    "AgentStep",
    "StepType",
    # Errors
    "AgentLoopError",
    "InvalidStateError",
    "OutputDecodingError",
    "SessionAlreadyRunningError",
    "StepLimitExceededError",
    "ToolExecutionError",
    "ToolNotFoundError",
]
