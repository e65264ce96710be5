"""
StepStream - async iteration over a LoopRunner, one pull per step.
"""

from typing import Any

from agentloop.domain import AgentStep, StepType
from agentloop.runtime.phase import LoopPhase
from agentloop.runtime.runner import LoopRunner
from agentloop.runtime.termination import TerminationReason


class StepStream:
    """
    Pull-based step sequence.

    Each __anext__ calls LoopRunner.next_step() exactly once, so stopping
    iteration early stops all further requests and tool calls.

    Examples:
        >>> async for step in agent.run_stream("What is 2 + 3?", output_type=Sum):
        ...     print(step)
    """

    def __init__(self, runner: LoopRunner):
        self.runner = runner
        self._result: Any = None
        self._finished = False

    def __aiter__(self) -> "StepStream":
        return self

    async def __anext__(self) -> AgentStep:
        if self._finished:
            raise StopAsyncIteration
        try:
            step = await self.runner.next_step()
        except Exception:
            self._finished = True
            raise
        if step is None:
            self._finished = True
            raise StopAsyncIteration
        if step.type == StepType.FINAL_RESPONSE:
            self._result = step.output
        elif step.type == StepType.TEXT_RESPONSE:
            self._result = step.text
        return step

    @property
    def phase(self) -> LoopPhase:
        return self.runner.phase

    @property
    def termination_reason(self) -> TerminationReason | None:
        return self.runner.termination_reason

    @property
    def current_step(self) -> int:
        return self.runner.current_step

    @property
    def result(self) -> Any:
        """Final output seen so far (None until the final step is pulled)."""
        return self._result

    async def collect(self) -> list[AgentStep]:
        """Drain the stream and return every step."""
        return [step async for step in self]

    async def final_output(self) -> Any:
        """Drain the stream and return the final result, or None if the run ended without one."""
        async for _ in self:
            pass
        return self._result


__all__ = ["StepStream"]
