"""
LoopRunner - the agent loop state machine.

Responsibilities:
- Advance the loop by exactly one observable AgentStep per next_step() call
- Send phase-shaped requests through the transport
- Apply the termination policy's decision
- Execute tool batches and queue their steps for later pulls
- Decode the final output, with corrective retries

Does NOT handle:
- Retries of transport errors (wrap the transport in RetryingTransport)
- Persistence of history across runs (see ConversationalSession)

Nothing happens between pulls: no request is sent and no tool runs until the
consumer asks for the next step.
"""

import re
from collections import deque
from functools import partial
from typing import Any, Awaitable, Callable, Union

from pydantic import TypeAdapter, ValidationError

from agentloop.domain import (
    AgentStep,
    InvalidStateError,
    LLMResponse,
    OutputDecodingError,
    StepLimitExceededError,
    ToolCallInfo,
    ToolResultInfo,
)
from agentloop.llm.base import ModelRequest, TransportClient
from agentloop.runtime.context import AgentContext
from agentloop.runtime.control import AbortSignal
from agentloop.runtime.phase import LoopPhase
from agentloop.runtime.state import LoopStateManager
from agentloop.runtime.termination import (
    DecisionAction,
    TerminationDecision,
    TerminationPolicy,
    TerminationReason,
    build_termination_policy,
)
from agentloop.tools import ASK_USER_TOOL_NAME
from agentloop.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_QUESTION = "Please provide additional information."
NO_ANSWER = "No answer provided"

AskUserHandler = Callable[[str], Awaitable[str | None]]
InterruptSource = Callable[[], list[str]]
PendingItem = Union[AgentStep, Callable[[], Awaitable[AgentStep | None]]]

_FENCE_RE = re.compile(r"^\s*```[A-Za-z0-9_-]*\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding Markdown code fence, if any."""
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    return text.strip()


class LoopRunner:
    """
    Pull-driven loop over one conversation.

    Args:
        transport: Sends ModelRequests
        context: History, tools, system prompt and configuration
        output_type: Type the final answer is decoded into; None for plain text
        policy: Termination policy (default stack from the configuration)
        model: Model override passed on every request
        abort_signal: Checked at the start of every pull and between tool calls
        interrupt_source: Drains queued user interrupts at turn boundaries
        ask_user_handler: Resolves ask_user questions; None runs ask_user as a normal tool
    """

    def __init__(
        self,
        transport: TransportClient,
        context: AgentContext,
        output_type: Any = None,
        *,
        policy: TerminationPolicy | None = None,
        model: str | None = None,
        abort_signal: AbortSignal | None = None,
        interrupt_source: InterruptSource | None = None,
        ask_user_handler: AskUserHandler | None = None,
        state: LoopStateManager | None = None,
    ):
        self.transport = transport
        self.context = context
        self.config = context.config
        self.output_type = output_type
        self.policy = policy or build_termination_policy(self.config)
        self.model = model
        self.abort_signal = abort_signal
        self.interrupt_source = interrupt_source
        self.ask_user_handler = ask_user_handler
        self.state = state or LoopStateManager(self.config.max_steps)

        self._adapter = TypeAdapter(output_type) if output_type is not None else None
        self._phase = LoopPhase.tool_use()
        self._pending: deque[PendingItem] = deque()
        self._termination_reason: TerminationReason | None = None
        self._error: Exception | None = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def phase(self) -> LoopPhase:
        return self._phase

    @property
    def termination_reason(self) -> TerminationReason | None:
        return self._termination_reason

    @property
    def error(self) -> Exception | None:
        return self._error

    @property
    def current_step(self) -> int:
        return self.state.current_step

    @property
    def is_completed(self) -> bool:
        return self._phase.is_completed

    def cancel(self, reason: str = "Run cancelled") -> None:
        if self.abort_signal is None:
            self.abort_signal = AbortSignal()
        self.abort_signal.abort(reason)

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    async def next_step(self) -> AgentStep | None:
        """
        Produce the next step, or None when the run is over.

        Raises:
            StepLimitExceededError: a request beyond max_steps was needed
            OutputDecodingError: the final output failed to decode after all retries
            LLMError: the transport failed
        """
        try:
            return await self._advance()
        except Exception as e:
            await self._fail(e)
            raise

    async def _advance(self) -> AgentStep | None:
        if self._is_cancelled():
            if not self._phase.is_completed:
                logger.info("loop_cancelled", step=self.state.current_step)
            self._pending.clear()
            await self._complete()
            return None

        if self._pending:
            return await self._drain()

        if self._phase.is_completed:
            return None

        snapshot = await self.state.snapshot()
        if snapshot.is_at_step_limit:
            raise StepLimitExceededError(self.config.max_steps)

        if self._phase.is_tool_use and self.interrupt_source is not None:
            interrupts = self.interrupt_source()
            if interrupts:
                for text in interrupts:
                    self.context.add_user_message(text)
                    self._pending.append(AgentStep.interrupted(text))
                logger.info("interrupts_applied", count=len(interrupts))
                return await self._drain()

        step = await self.state.increment_step()
        request = self._build_request()
        logger.info(
            "loop_step_started",
            step=step,
            phase=str(self._phase),
            tools_count=len(request.tools or []),
            structured_output=request.output_schema is not None,
        )

        response = await self.transport.send(request)
        self.context.add_assistant_response(response)

        # The policy judges the response against the state the request was issued from
        decision = self.policy.should_terminate(response, snapshot)
        logger.debug("termination_decision", step=step, action=decision.action.value)
        return await self._handle_decision(decision, response)

    async def _handle_decision(
        self, decision: TerminationDecision, response: LLMResponse
    ) -> AgentStep | None:
        if decision.action == DecisionAction.CONTINUE_WITH_TOOLS:
            return await self._process_tool_calls(list(decision.tool_calls))

        if decision.action == DecisionAction.CONTINUE_WITH_THINKING:
            return AgentStep.thinking(response)

        if decision.action == DecisionAction.TERMINATE_WITH_OUTPUT:
            return await self._decode_final_output(decision.text or "", response)

        reason = decision.reason or TerminationReason.completed()
        self._termination_reason = reason
        await self._complete()
        logger.info(
            "loop_terminated",
            reason=reason.kind.value,
            detail=str(reason),
            step=self.state.current_step,
        )
        return None

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    async def _process_tool_calls(self, calls: list[ToolCallInfo]) -> AgentStep | None:
        if not self.config.auto_execute_tools:
            for call in calls:
                await self.state.record_tool_call(call)
                self._pending.append(AgentStep.tool_call_step(call))
            self._termination_reason = TerminationReason.completed()
            await self._complete()
            logger.info("tool_calls_returned_unexecuted", count=len(calls))
            return await self._drain()

        await self._run_batch(calls, [])
        return await self._drain()

    async def _run_batch(self, calls: list[ToolCallInfo], results: list[ToolResultInfo]) -> None:
        """
        Record, execute and queue steps for calls in order.

        An ask_user call parks the rest of the batch behind a deferred item that
        waits for the answer. Results are appended to history once the whole
        batch is done.
        """
        for index, call in enumerate(calls):
            if self._is_cancelled():
                await self._complete()
                break

            await self.state.record_tool_call(call)
            self._pending.append(AgentStep.tool_call_step(call))

            if self._handles_ask_user(call):
                question = self._question_for(call)
                self._pending.append(AgentStep.asking_user(question))
                self._pending.append(AgentStep.awaiting_user_input(question))
                self._pending.append(
                    partial(self._resume_with_answer, call, question, calls[index + 1 :], results)
                )
                return

            result = await self._execute_tool(call)
            results.append(result)
            self._pending.append(AgentStep.tool_result_step(result))

        self.context.add_tool_results(results)

    async def _resume_with_answer(
        self,
        call: ToolCallInfo,
        question: str,
        remaining: list[ToolCallInfo],
        results: list[ToolResultInfo],
    ) -> AgentStep | None:
        logger.info("awaiting_user_answer", question=question)
        answer = await self.ask_user_handler(question)

        if answer is None or self._is_cancelled():
            self.context.add_tool_results(results)
            self._pending.clear()
            await self._complete()
            return None

        result = ToolResultInfo(
            tool_call_id=call.id,
            name=call.name,
            content=answer if answer.strip() else NO_ANSWER,
        )
        results.append(result)
        await self._run_batch(remaining, results)
        return AgentStep.tool_result_step(result)

    def _handles_ask_user(self, call: ToolCallInfo) -> bool:
        return (
            self.ask_user_handler is not None
            and call.name == ASK_USER_TOOL_NAME
            and ASK_USER_TOOL_NAME in self.context.tools
        )

    @staticmethod
    def _question_for(call: ToolCallInfo) -> str:
        try:
            args = call.decode_arguments()
        except ValueError:
            return DEFAULT_QUESTION
        if isinstance(args, dict):
            question = args.get("question")
            if isinstance(question, str) and question.strip():
                return question
        return DEFAULT_QUESTION

    async def _execute_tool(self, call: ToolCallInfo) -> ToolResultInfo:
        try:
            result = await self.context.tools.execute(call.name, call.arguments)
        except Exception as e:
            # The model sees the failure and can correct itself
            logger.warning(
                "tool_execution_failed",
                tool_name=call.name,
                tool_call_id=call.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return ToolResultInfo(
                tool_call_id=call.id, name=call.name, content=f"Error: {e}", is_error=True
            )
        return ToolResultInfo(
            tool_call_id=call.id,
            name=call.name,
            content=result.content,
            is_error=result.is_error,
        )

    # ------------------------------------------------------------------
    # Final output
    # ------------------------------------------------------------------

    async def _decode_final_output(self, text: str, response: LLMResponse) -> AgentStep | None:
        if self._phase.is_completed:
            raise InvalidStateError("final output requested after completion")

        if self._adapter is None:
            self._termination_reason = TerminationReason.completed()
            await self._complete()
            logger.info("loop_completed", step=self.state.current_step, output="text")
            return AgentStep.text_response(text)

        if self._phase.is_tool_use:
            if not self.context.tools.is_empty():
                self._set_phase(LoopPhase.final_output(0))
                self.context.add_final_output_request()
                logger.info("final_output_requested", step=self.state.current_step)
                return AgentStep.thinking(response)
            retry_count = 0
        else:
            retry_count = self._phase.retry_count

        try:
            output = self._adapter.validate_json(strip_code_fences(text))
        except ValidationError as e:
            if retry_count < self.config.max_decode_retries:
                self._set_phase(LoopPhase.final_output(retry_count + 1))
                self.context.add_decode_retry_request(e)
                logger.warning(
                    "output_decode_failed",
                    retry_count=retry_count + 1,
                    max_decode_retries=self.config.max_decode_retries,
                    error_count=e.error_count(),
                )
                return AgentStep.thinking(response)
            raise OutputDecodingError(e, raw_text=text) from e

        self._termination_reason = TerminationReason.completed()
        await self._complete()
        logger.info("loop_completed", step=self.state.current_step, output="structured")
        return AgentStep.final_response(output)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _build_request(self) -> ModelRequest:
        tools = self.context.tools
        if self._phase.is_final_output:
            tool_defs = None
            with_schema = True
        else:
            tool_defs = tools.definitions() or None
            with_schema = tools.is_empty()

        schema = None
        schema_name = None
        if with_schema and self._adapter is not None:
            schema = self._adapter.json_schema()
            schema_name = getattr(self.output_type, "__name__", "output")

        return ModelRequest(
            messages=self.context.messages,
            tools=tool_defs,
            output_schema=schema,
            output_schema_name=schema_name,
            system_prompt=self.context.system_prompt,
            model=self.model,
        )

    async def _drain(self) -> AgentStep | None:
        if not self._pending:
            return None
        item = self._pending.popleft()
        if isinstance(item, AgentStep):
            return item
        return await item()

    def _set_phase(self, target: LoopPhase) -> None:
        self._phase = self._phase.transition(target)

    async def _complete(self) -> None:
        if not self._phase.is_completed:
            self._set_phase(LoopPhase.completed())
        await self.state.mark_completed()

    async def _fail(self, error: Exception) -> None:
        self._error = error
        self._pending.clear()
        await self._complete()
        logger.error(
            "loop_failed",
            step=self.state.current_step,
            error=str(error),
            error_type=type(error).__name__,
        )

    def _is_cancelled(self) -> bool:
        return self.abort_signal is not None and self.abort_signal.is_aborted()


__all__ = ["LoopRunner", "AskUserHandler", "InterruptSource", "strip_code_fences"]
