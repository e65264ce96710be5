"""
agentloop - LLM tool-use loop engine

Top-level exports for easy access to core functionality.
"""

# Top-level Agent class
from agentloop.agent import Agent

# Config
from agentloop.config import AgentConfiguration, AgentLoopSettings, settings

# Domain models
from agentloop.domain import (
    AgentLoopError,
    AgentStep,
    InvalidStateError,
    LLMResponse,
    Message,
    MessageRole,
    OutputDecodingError,
    SessionAlreadyRunningError,
    StepLimitExceededError,
    StepType,
    StopReason,
    TextBlock,
    ToolCallInfo,
    ToolNotFoundError,
    ToolResultInfo,
    ToolUseBlock,
)

# Transport
from agentloop.llm import (
    ExponentialBackoffPolicy,
    LLMError,
    ModelRequest,
    NoRetryPolicy,
    RetryExecutor,
    RetryingTransport,
    TransportClient,
)

# Runtime
from agentloop.runtime import (
    AbortSignal,
    AgentContext,
    CompositeTerminationPolicy,
    DuplicateDetectionPolicy,
    LoopPhase,
    LoopRunner,
    LoopStateManager,
    StandardTerminationPolicy,
    StepStream,
    TerminationDecision,
    TerminationPolicy,
    TerminationReason,
    build_termination_policy,
)
from agentloop.session import ConversationalSession, SessionStatus

# Tools
from agentloop.tools import AskUserTool, BaseTool, FunctionTool, ToolResult, ToolSet, tool

__version__ = "0.1.0"

__all__ = [
    # Agent
    "Agent",
    # Config
    "AgentConfiguration",
    "AgentLoopSettings",
    "settings",
    # Domain
    "AgentLoopError",
    "AgentStep",
    "InvalidStateError",
    "LLMResponse",
    "Message",
    "MessageRole",
    "OutputDecodingError",
    "SessionAlreadyRunningError",
    "StepLimitExceededError",
    "StepType",
    "StopReason",
    "TextBlock",
    "ToolCallInfo",
    "ToolNotFoundError",
    "ToolResultInfo",
    "ToolUseBlock",
    # Transport
    "ExponentialBackoffPolicy",
    "LLMError",
    "ModelRequest",
    "NoRetryPolicy",
    "RetryExecutor",
    "RetryingTransport",
    "TransportClient",
    # Runtime
    "AbortSignal",
    "AgentContext",
    "CompositeTerminationPolicy",
    "DuplicateDetectionPolicy",
    "LoopPhase",
    "LoopRunner",
    "LoopStateManager",
    "StandardTerminationPolicy",
    "StepStream",
    "TerminationDecision",
    "TerminationPolicy",
    "TerminationReason",
    "build_termination_policy",
    "ConversationalSession",
    "SessionStatus",
    # Tools
    "AskUserTool",
    "BaseTool",
    "FunctionTool",
    "ToolResult",
    "ToolSet",
    "tool",
]
