"""
Loop state - step counter, tool-call history and completion flag.

LoopStateManager owns the mutable state of one loop run behind an asyncio.Lock.
Termination policies never see the manager itself, only an immutable
LoopStateSnapshot taken before each decision.
"""

import asyncio
import hashlib
import json
import time
from dataclasses import dataclass, field

from agentloop.domain import StepLimitExceededError, ToolCallInfo
from agentloop.utils.logging import get_logger

logger = get_logger(__name__)


def stable_hash(arguments: bytes | str | None) -> str:
    """
    sha256 of the canonical JSON form of tool arguments.

    Key order and whitespace do not matter. Arguments that are not valid JSON
    are hashed as raw bytes.
    """
    if arguments is None:
        arguments = b""
    raw = arguments.encode("utf-8") if isinstance(arguments, str) else arguments
    try:
        decoded = json.loads(raw) if raw else {}
        canonical = json.dumps(
            decoded, sort_keys=True, separators=(",", ":"), ensure_ascii=False
        ).encode("utf-8")
    except (ValueError, UnicodeDecodeError):
        canonical = raw
    return hashlib.sha256(canonical).hexdigest()


@dataclass(frozen=True)
class ToolCallRecord:
    """One executed (or attempted) tool call. Equality ignores the timestamp."""

    name: str
    input_hash: str
    timestamp: float = field(default_factory=time.time, compare=False)

    @classmethod
    def from_call(cls, call: ToolCallInfo) -> "ToolCallRecord":
        return cls(name=call.name, input_hash=stable_hash(call.arguments))


@dataclass(frozen=True)
class LoopStateSnapshot:
    """Read-only view of loop state handed to termination policies."""

    current_step: int
    max_steps: int
    is_completed: bool = False
    tool_call_history: tuple[ToolCallRecord, ...] = ()

    @property
    def is_at_step_limit(self) -> bool:
        return self.current_step >= self.max_steps

    @property
    def remaining_steps(self) -> int:
        return max(0, self.max_steps - self.current_step)

    def count_tool_calls(self, name: str) -> int:
        return sum(1 for r in self.tool_call_history if r.name == name)

    def count_duplicate_tool_calls(self, name: str, input_hash: str) -> int:
        return sum(
            1 for r in self.tool_call_history if r.name == name and r.input_hash == input_hash
        )

    def last_tool_call(self, name: str | None = None) -> ToolCallRecord | None:
        for record in reversed(self.tool_call_history):
            if name is None or record.name == name:
                return record
        return None

    def count_consecutive_same_tool_calls(self) -> int:
        """Length of the trailing run of identical (name, input_hash) records."""
        if not self.tool_call_history:
            return 0
        last = self.tool_call_history[-1]
        count = 0
        for record in reversed(self.tool_call_history):
            if record != last:
                break
            count += 1
        return count

    def with_record(self, record: ToolCallRecord) -> "LoopStateSnapshot":
        """Snapshot as if record had already been made."""
        return LoopStateSnapshot(
            current_step=self.current_step,
            max_steps=self.max_steps,
            is_completed=self.is_completed,
            tool_call_history=(*self.tool_call_history, record),
        )


class LoopStateManager:
    """
    Serialized loop state for one runner.

    Invariants:
    - current_step never decreases and never exceeds max_steps
    - tool-call history is append-only until reset()
    """

    def __init__(self, max_steps: int):
        if max_steps < 1:
            raise ValueError("max_steps must be >= 1")
        self.max_steps = max_steps
        self._lock = asyncio.Lock()
        self._current_step = 0
        self._completed = False
        self._history: list[ToolCallRecord] = []

    @property
    def current_step(self) -> int:
        return self._current_step

    @property
    def is_completed(self) -> bool:
        return self._completed

    @property
    def tool_call_history(self) -> tuple[ToolCallRecord, ...]:
        return tuple(self._history)

    async def increment_step(self) -> int:
        """Advance the step counter; refuse to go past max_steps."""
        async with self._lock:
            if self._current_step >= self.max_steps:
                raise StepLimitExceededError(self.max_steps)
            self._current_step += 1
            return self._current_step

    async def record_tool_call(self, call: ToolCallInfo | ToolCallRecord) -> ToolCallRecord:
        record = call if isinstance(call, ToolCallRecord) else ToolCallRecord.from_call(call)
        async with self._lock:
            self._history.append(record)
        return record

    async def count_tool_calls(self, name: str) -> int:
        async with self._lock:
            return sum(1 for r in self._history if r.name == name)

    async def count_duplicate_tool_calls(self, name: str, input_hash: str) -> int:
        async with self._lock:
            return sum(1 for r in self._history if r.name == name and r.input_hash == input_hash)

    async def last_tool_call(self, name: str | None = None) -> ToolCallRecord | None:
        return (await self.snapshot()).last_tool_call(name)

    async def count_consecutive_same_tool_calls(self) -> int:
        return (await self.snapshot()).count_consecutive_same_tool_calls()

    async def mark_completed(self) -> None:
        async with self._lock:
            self._completed = True

    async def can_continue(self) -> bool:
        async with self._lock:
            return not self._completed and self._current_step < self.max_steps

    async def snapshot(self) -> LoopStateSnapshot:
        async with self._lock:
            return LoopStateSnapshot(
                current_step=self._current_step,
                max_steps=self.max_steps,
                is_completed=self._completed,
                tool_call_history=tuple(self._history),
            )

    async def reset(self) -> None:
        """Start over. Only valid between independent runs."""
        async with self._lock:
            self._current_step = 0
            self._completed = False
            self._history.clear()
        logger.debug("loop_state_reset")


__all__ = ["stable_hash", "ToolCallRecord", "LoopStateSnapshot", "LoopStateManager"]
