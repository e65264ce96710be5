"""
Agent - Top-level agent class.

Holds the transport, tools, system prompt and configuration. Every run gets
a fresh history, runner and state:

    agent = Agent(OpenAITransport(), tools=[add], system_prompt="You are a calculator.")
    async for step in agent.run_stream("What is 2 + 3?", output_type=Sum):
        print(step)
"""

from typing import Any, Callable, Iterable

from agentloop.config import AgentConfiguration
from agentloop.llm.base import TransportClient
from agentloop.runtime import AbortSignal, AgentContext, LoopRunner, StepStream, TerminationPolicy
from agentloop.session import ConversationalSession
from agentloop.tools import BaseTool, ToolSet


class Agent:
    """
    Agent Configuration Container.

    One-shot runs go through run_stream()/run(); multi-turn conversations
    through session().
    """

    def __init__(
        self,
        transport: TransportClient,
        tools: ToolSet | Iterable[BaseTool | Callable] | None = None,
        system_prompt: str | None = None,
        config: AgentConfiguration | None = None,
        model: str | None = None,
        policy: TerminationPolicy | None = None,
        name: str = "agentloop_agent",
    ):
        self.name = name
        self.transport = transport
        self.tools = tools if isinstance(tools, ToolSet) else ToolSet(tools)
        self.system_prompt = system_prompt
        self.config = config or AgentConfiguration()
        self.model = model
        self.policy = policy

    def run_stream(
        self,
        prompt: str,
        output_type: Any = None,
        model: str | None = None,
        abort_signal: AbortSignal | None = None,
    ) -> StepStream:
        """Start a run. Nothing is sent until the returned stream is iterated."""
        context = AgentContext(
            tools=self.tools, system_prompt=self.system_prompt, config=self.config
        )
        context.add_user_message(prompt)
        runner = LoopRunner(
            self.transport,
            context,
            output_type,
            policy=self.policy,
            model=model or self.model,
            abort_signal=abort_signal,
        )
        return StepStream(runner)

    async def run(self, prompt: str, output_type: Any = None, model: str | None = None) -> Any:
        """Run to completion and return the final output (None if the run ended without one)."""
        return await self.run_stream(prompt, output_type, model=model).final_output()

    def session(self, interactive: bool = False, **kwargs) -> ConversationalSession:
        return ConversationalSession(
            self.transport,
            tools=self.tools,
            system_prompt=self.system_prompt,
            config=self.config,
            interactive=interactive,
            model=self.model,
            policy=self.policy,
            **kwargs,
        )


__all__ = ["Agent"]
