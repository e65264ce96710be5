"""
Runtime - the loop engine.

- LoopStateManager: step counter and tool-call history
- Termination policies: when to stop
- LoopRunner: one step per pull
- StepStream: async iterator over a runner
"""

from agentloop.runtime.context import AgentContext
from agentloop.runtime.control import AbortSignal
from agentloop.runtime.phase import LoopPhase, LoopPhaseKind
from agentloop.runtime.runner import LoopRunner, strip_code_fences
from agentloop.runtime.state import (
    LoopStateManager,
    LoopStateSnapshot,
    ToolCallRecord,
    stable_hash,
)
from agentloop.runtime.stream import StepStream
from agentloop.runtime.termination import (
    CompositeTerminationPolicy,
    DecisionAction,
    DuplicateDetectionPolicy,
    StandardTerminationPolicy,
    TerminationDecision,
    TerminationPolicy,
    TerminationReason,
    TerminationReasonKind,
    build_termination_policy,
)

__all__ = [
    "AgentContext",
    "AbortSignal",
    "LoopPhase",
    "LoopPhaseKind",
    "LoopRunner",
    "strip_code_fences",
    "LoopStateManager",
    "LoopStateSnapshot",
    "ToolCallRecord",
    "stable_hash",
    "StepStream",
    "CompositeTerminationPolicy",
    "DecisionAction",
    "DuplicateDetectionPolicy",
    "StandardTerminationPolicy",
    "TerminationDecision",
    "TerminationPolicy",
    "TerminationReason",
    "TerminationReasonKind",
    "build_termination_policy",
]
