"""
ConversationalSession - a long-lived agent conversation.

Adds to a plain run:
- History that persists across run() calls
- FIFO user interrupts, applied between model turns
- ask_user pause: the stream waits until reply() or cancel()
- Single flight: one active run per session
- cancel() and resume()

Usage:
    session = ConversationalSession(transport, tools=[search], interactive=True)
    async for step in session.run("Plan my trip"):
        if step.type == StepType.AWAITING_USER_INPUT:
            session.reply(input(step.question))
"""

import asyncio
from collections import deque
from typing import Any, AsyncIterator, Callable, Iterable

from agentloop.config import AgentConfiguration
from agentloop.domain import (
    AgentStep,
    InvalidStateError,
    Message,
    MessageRole,
    SessionAlreadyRunningError,
    StepType,
)
from agentloop.llm.base import TransportClient
from agentloop.runtime import (
    AbortSignal,
    AgentContext,
    LoopRunner,
    LoopStateManager,
    TerminationPolicy,
)
from agentloop.session.status import SessionStatus
from agentloop.tools import AskUserTool, BaseTool, ToolSet
from agentloop.utils.logging import get_logger

logger = get_logger(__name__)

CONTINUE_MESSAGE = "Please continue where you left off."


class ConversationalSession:
    """
    Interactive agent session.

    All state is owned by the session and mutated only from the event loop
    thread; methods that do not await are atomic.
    """

    def __init__(
        self,
        transport: TransportClient,
        tools: ToolSet | Iterable[BaseTool | Callable] | None = None,
        system_prompt: str | None = None,
        config: AgentConfiguration | None = None,
        interactive: bool = False,
        messages: Iterable[Message] | None = None,
        model: str | None = None,
        policy: TerminationPolicy | None = None,
    ):
        tool_set = tools if isinstance(tools, ToolSet) else ToolSet(tools)
        if interactive:
            tool_set = tool_set.appending(AskUserTool())

        self.transport = transport
        self.model = model
        self.policy = policy
        self.context = AgentContext(
            tools=tool_set, system_prompt=system_prompt, config=config, messages=messages
        )
        self.interactive = interactive

        self._state = LoopStateManager(self.context.config.max_steps)
        self._abort = AbortSignal()
        self._interrupts: deque[str] = deque()
        self._answer: asyncio.Future | None = None
        self._status = SessionStatus.idle()
        self._runner: LoopRunner | None = None
        self._run_id = 0
        self._pulling = False

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def messages(self) -> list[Message]:
        return self.context.messages

    @property
    def turn_count(self) -> int:
        """User turns so far. Tool-result messages do not count."""
        return sum(1 for m in self.context.messages if m.role == MessageRole.USER and m.has_text())

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def running(self) -> bool:
        return self._status.is_active

    @property
    def waiting_for_answer(self) -> bool:
        return self._status.can_reply

    @property
    def pending_interrupts(self) -> list[str]:
        return list(self._interrupts)

    @property
    def last_runner(self) -> LoopRunner | None:
        return self._runner

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def run(
        self, prompt: str, model: str | None = None, output_type: Any = None
    ) -> AsyncIterator[AgentStep]:
        """
        Start a run with a new user message.

        A stream left unfinished by an earlier run is superseded: it yields at
        most its cancelled step and never touches the session again.

        Raises:
            SessionAlreadyRunningError: a run is already active
        """
        run_id, abort = self._begin()
        self.context.repair_incomplete_tool_uses()
        self.context.add_user_message(prompt)
        logger.info("session_run_started", turn=self.turn_count)
        return self._drive(run_id, abort, AgentStep.user_message(prompt), model, output_type)

    def resume(self, model: str | None = None, output_type: Any = None) -> AsyncIterator[AgentStep]:
        """
        Continue a paused or failed conversation.

        Raises:
            SessionAlreadyRunningError: a run is already active
            InvalidStateError: there is no history to resume
        """
        if not self._status.can_resume:
            raise SessionAlreadyRunningError()
        if not len(self.context):
            raise InvalidStateError("No conversation history to resume. Use run() instead.")
        run_id, abort = self._begin()
        self.context.repair_incomplete_tool_uses()
        self.context.add_user_message(CONTINUE_MESSAGE)
        logger.info("session_resumed", turn=self.turn_count)
        return self._drive(
            run_id, abort, AgentStep.user_message(CONTINUE_MESSAGE), model, output_type
        )

    def _begin(self) -> tuple[int, AbortSignal]:
        # A pull still in flight must finish before its run can be replaced
        if not self._status.can_run or self._pulling:
            raise SessionAlreadyRunningError()
        self._run_id += 1
        self._abort = AbortSignal()
        self._answer = None
        self._status = SessionStatus.running()
        return self._run_id, self._abort

    def _is_current(self, run_id: int) -> bool:
        return run_id == self._run_id

    async def _drive(
        self,
        run_id: int,
        abort: AbortSignal,
        opening: AgentStep,
        model: str | None,
        output_type: Any,
    ) -> AsyncIterator[AgentStep]:
        finished = False
        try:
            if not self._is_current(run_id):
                finished = True
                return

            await self._state.reset()
            self._runner = LoopRunner(
                self.transport,
                self.context,
                output_type,
                policy=self.policy,
                model=model or self.model,
                abort_signal=abort,
                interrupt_source=self._drain_interrupts,
                ask_user_handler=self._wait_for_answer,
                state=self._state,
            )
            self._status = SessionStatus.running(opening)
            yield opening

            while self._is_current(run_id):
                self._pulling = True
                try:
                    step = await self._runner.next_step()
                except Exception as e:
                    self._status = SessionStatus.failed(str(e))
                    logger.error("session_run_failed", error=str(e), error_type=type(e).__name__)
                    raise
                finally:
                    self._pulling = False
                if step is None:
                    break
                self._track(step)
                yield step

            if not self._is_current(run_id):
                # Superseded by a newer run after being cancelled
                finished = True
                if abort.is_aborted():
                    yield AgentStep.cancelled(abort.reason)
                return

            if abort.is_aborted():
                self.context.repair_incomplete_tool_uses()
                self._status = SessionStatus.paused()
                logger.info("session_cancelled", reason=abort.reason)
                yield AgentStep.cancelled(abort.reason)
            else:
                self._status = SessionStatus.idle()
                logger.info(
                    "session_run_completed",
                    steps=self._state.current_step,
                    reason=str(self._runner.termination_reason),
                )
            finished = True
        finally:
            if not finished and self._is_current(run_id) and self._status.is_active:
                # Consumer stopped iterating mid-run
                self._release_answer()
                self._status = SessionStatus.paused()

    def _track(self, step: AgentStep) -> None:
        if step.type == StepType.AWAITING_USER_INPUT:
            # Created here so a reply() before the next pull is not lost
            self._answer = asyncio.get_running_loop().create_future()
            self._status = SessionStatus.awaiting_user_input(step.question or "")
        else:
            self._status = SessionStatus.running(step)

    async def _wait_for_answer(self, question: str) -> str | None:
        if self._abort.is_aborted():
            return None
        if self._answer is None:
            self._answer = asyncio.get_running_loop().create_future()
            self._status = SessionStatus.awaiting_user_input(question)
        try:
            return await self._answer
        finally:
            self._answer = None
            if self._status.can_reply:
                self._status = SessionStatus.running()

    def _drain_interrupts(self) -> list[str]:
        drained = list(self._interrupts)
        self._interrupts.clear()
        return drained

    def _release_answer(self) -> None:
        if self._answer is not None and not self._answer.done():
            self._answer.set_result(None)

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def interrupt(self, text: str) -> bool:
        """Queue a user message for the next turn boundary. Ignored when no run is active."""
        if not self._status.can_interrupt:
            return False
        self._interrupts.append(text)
        logger.debug("interrupt_queued", pending=len(self._interrupts))
        return True

    def clear_interrupts(self) -> None:
        self._interrupts.clear()

    def reply(self, text: str) -> bool:
        """Answer the pending ask_user question. Returns False if nothing is waiting."""
        if self._answer is None or self._answer.done():
            return False
        self._answer.set_result(text)
        self._status = SessionStatus.running()
        logger.info("user_replied")
        return True

    def cancel(self, reason: str = "Session cancelled") -> bool:
        """Stop the active run at its next checkpoint. Safe to call at any time."""
        if not self._status.can_cancel:
            return False
        self._abort.abort(reason)
        self._interrupts.clear()
        self._release_answer()
        self._status = SessionStatus.paused()
        logger.info("session_cancel_requested", reason=reason)
        return True

    def clear(self) -> None:
        """
        Drop history and queued interrupts.

        Raises:
            InvalidStateError: a run is active
        """
        if not self._status.can_clear or self._pulling:
            raise InvalidStateError("cannot clear a running session")
        self.context.clear()
        self._interrupts.clear()
        self._status = SessionStatus.idle()


__all__ = ["ConversationalSession", "CONTINUE_MESSAGE"]
