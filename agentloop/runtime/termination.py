"""
Termination policies.

A policy looks at one model response plus a read-only state snapshot and
decides what the loop does next. Policies are pure: no I/O, no mutation.

Default stack:

    DuplicateDetectionPolicy(StandardTerminationPolicy(), max_duplicates, max_tool_calls_per_tool)
"""

from enum import Enum
from typing import Iterable, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

from agentloop.config import AgentConfiguration
from agentloop.domain import LLMResponse, StopReason, ToolCallInfo
from agentloop.runtime.state import LoopStateSnapshot, ToolCallRecord
from agentloop.utils.logging import get_logger

logger = get_logger(__name__)


# ============================================================================
# Reasons and decisions
# ============================================================================


class TerminationReasonKind(str, Enum):
    COMPLETED = "completed"
    MAX_STEPS_REACHED = "max_steps_reached"
    DUPLICATE_TOOL_CALL_DETECTED = "duplicate_tool_call_detected"
    MAX_TOOL_CALLS_PER_TOOL_REACHED = "max_tool_calls_per_tool_reached"
    EMPTY_RESPONSE = "empty_response"
    UNEXPECTED_STOP_REASON = "unexpected_stop_reason"


class TerminationReason(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: TerminationReasonKind
    steps: int | None = None
    tool_name: str | None = None
    count: int | None = None
    detail: str | None = None

    @classmethod
    def completed(cls) -> "TerminationReason":
        return cls(kind=TerminationReasonKind.COMPLETED)

    @classmethod
    def max_steps_reached(cls, steps: int) -> "TerminationReason":
        return cls(kind=TerminationReasonKind.MAX_STEPS_REACHED, steps=steps)

    @classmethod
    def duplicate_tool_call_detected(cls, tool_name: str, count: int) -> "TerminationReason":
        return cls(
            kind=TerminationReasonKind.DUPLICATE_TOOL_CALL_DETECTED,
            tool_name=tool_name,
            count=count,
        )

    @classmethod
    def max_tool_calls_per_tool_reached(cls, tool_name: str, count: int) -> "TerminationReason":
        return cls(
            kind=TerminationReasonKind.MAX_TOOL_CALLS_PER_TOOL_REACHED,
            tool_name=tool_name,
            count=count,
        )

    @classmethod
    def empty_response(cls) -> "TerminationReason":
        return cls(kind=TerminationReasonKind.EMPTY_RESPONSE)

    @classmethod
    def unexpected_stop_reason(cls, detail: str) -> "TerminationReason":
        return cls(kind=TerminationReasonKind.UNEXPECTED_STOP_REASON, detail=detail)

    def __str__(self) -> str:
        k = self.kind
        if k == TerminationReasonKind.MAX_STEPS_REACHED:
            return f"Maximum steps reached ({self.steps})"
        if k == TerminationReasonKind.DUPLICATE_TOOL_CALL_DETECTED:
            return f"Duplicate tool call detected: {self.tool_name} ({self.count} times)"
        if k == TerminationReasonKind.MAX_TOOL_CALLS_PER_TOOL_REACHED:
            return f"Tool call limit reached: {self.tool_name} ({self.count} calls)"
        if k == TerminationReasonKind.EMPTY_RESPONSE:
            return "Empty response from model"
        if k == TerminationReasonKind.UNEXPECTED_STOP_REASON:
            return f"Unexpected stop reason: {self.detail}"
        return "Completed"


class DecisionAction(str, Enum):
    CONTINUE_WITH_TOOLS = "continue_with_tools"
    CONTINUE_WITH_THINKING = "continue_with_thinking"
    TERMINATE_WITH_OUTPUT = "terminate_with_output"
    TERMINATE_IMMEDIATELY = "terminate_immediately"


class TerminationDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: DecisionAction
    tool_calls: tuple[ToolCallInfo, ...] = ()
    text: str | None = None
    reason: TerminationReason | None = None

    @classmethod
    def continue_with_tools(cls, calls: Iterable[ToolCallInfo]) -> "TerminationDecision":
        return cls(action=DecisionAction.CONTINUE_WITH_TOOLS, tool_calls=tuple(calls))

    @classmethod
    def continue_with_thinking(cls) -> "TerminationDecision":
        return cls(action=DecisionAction.CONTINUE_WITH_THINKING)

    @classmethod
    def terminate_with_output(cls, text: str) -> "TerminationDecision":
        return cls(action=DecisionAction.TERMINATE_WITH_OUTPUT, text=text)

    @classmethod
    def terminate_immediately(cls, reason: TerminationReason) -> "TerminationDecision":
        return cls(action=DecisionAction.TERMINATE_IMMEDIATELY, reason=reason)

    @property
    def should_terminate(self) -> bool:
        return self.action in (
            DecisionAction.TERMINATE_WITH_OUTPUT,
            DecisionAction.TERMINATE_IMMEDIATELY,
        )


# ============================================================================
# Policies
# ============================================================================


@runtime_checkable
class TerminationPolicy(Protocol):
    def should_terminate(
        self, response: LLMResponse, state: LoopStateSnapshot
    ) -> TerminationDecision: ...


class StandardTerminationPolicy:
    """Step limit first, then tool calls, then the stop reason."""

    def should_terminate(
        self, response: LLMResponse, state: LoopStateSnapshot
    ) -> TerminationDecision:
        if state.is_at_step_limit:
            return TerminationDecision.terminate_immediately(
                TerminationReason.max_steps_reached(state.max_steps)
            )

        # Some providers report end_turn even when tool calls are present
        calls = response.tool_calls()
        if calls:
            return TerminationDecision.continue_with_tools(calls)

        text = response.text()
        stop = response.stop_reason

        if stop in (StopReason.END_TURN, StopReason.STOP_SEQUENCE):
            if text:
                return TerminationDecision.terminate_with_output(text)
            return TerminationDecision.terminate_immediately(TerminationReason.completed())

        if stop == StopReason.MAX_TOKENS:
            if text:
                return TerminationDecision.terminate_with_output(text)
            return TerminationDecision.terminate_immediately(
                TerminationReason.unexpected_stop_reason("max_tokens")
            )

        if stop == StopReason.TOOL_USE:
            return TerminationDecision.terminate_immediately(
                TerminationReason.unexpected_stop_reason("tool_use without tool calls")
            )

        if text:
            return TerminationDecision.terminate_with_output(text)
        return TerminationDecision.terminate_immediately(TerminationReason.empty_response())


class DuplicateDetectionPolicy:
    """
    Stops runaway tool usage.

    Wraps another policy and inspects only its continue_with_tools decisions.
    The whole batch is checked before anything runs; a call is blocked when
    the per-tool total or the identical-call count has already reached its
    limit. Calls earlier in the same batch count as history.
    """

    def __init__(
        self,
        inner: TerminationPolicy,
        max_duplicates: int = 2,
        max_tool_calls_per_tool: int | None = 5,
    ):
        self.inner = inner
        self.max_duplicates = max_duplicates
        self.max_tool_calls_per_tool = max_tool_calls_per_tool

    def should_terminate(
        self, response: LLMResponse, state: LoopStateSnapshot
    ) -> TerminationDecision:
        decision = self.inner.should_terminate(response, state)
        if decision.action != DecisionAction.CONTINUE_WITH_TOOLS:
            return decision

        view = state
        for call in decision.tool_calls:
            record = ToolCallRecord.from_call(call)

            if self.max_tool_calls_per_tool is not None:
                total = view.count_tool_calls(call.name)
                if total >= self.max_tool_calls_per_tool:
                    logger.warning(
                        "tool_call_limit_reached",
                        tool_name=call.name,
                        count=total + 1,
                        limit=self.max_tool_calls_per_tool,
                    )
                    return TerminationDecision.terminate_immediately(
                        TerminationReason.max_tool_calls_per_tool_reached(call.name, total + 1)
                    )

            duplicates = view.count_duplicate_tool_calls(call.name, record.input_hash)
            if duplicates >= self.max_duplicates:
                logger.warning(
                    "duplicate_tool_call_detected",
                    tool_name=call.name,
                    count=duplicates + 1,
                    limit=self.max_duplicates,
                )
                return TerminationDecision.terminate_immediately(
                    TerminationReason.duplicate_tool_call_detected(call.name, duplicates + 1)
                )

            view = view.with_record(record)

        return decision


class CompositeTerminationPolicy:
    """First terminating decision wins; otherwise the last policy's decision."""

    def __init__(self, policies: Iterable[TerminationPolicy]):
        self.policies = list(policies)

    def should_terminate(
        self, response: LLMResponse, state: LoopStateSnapshot
    ) -> TerminationDecision:
        decision = None
        for policy in self.policies:
            decision = policy.should_terminate(response, state)
            if decision.should_terminate:
                return decision
        if decision is None:
            return TerminationDecision.terminate_immediately(TerminationReason.completed())
        return decision


def build_termination_policy(config: AgentConfiguration | None = None) -> TerminationPolicy:
    """Default policy stack for a configuration."""
    config = config or AgentConfiguration()
    return DuplicateDetectionPolicy(
        StandardTerminationPolicy(),
        max_duplicates=config.max_duplicate_tool_calls,
        max_tool_calls_per_tool=config.max_tool_calls_per_tool,
    )


__all__ = [
    "TerminationReasonKind",
    "TerminationReason",
    "DecisionAction",
    "TerminationDecision",
    "TerminationPolicy",
    "StandardTerminationPolicy",
    "DuplicateDetectionPolicy",
    "CompositeTerminationPolicy",
    "build_termination_policy",
]
