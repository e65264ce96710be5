"""
Loop phases.

tool_use -> final_output(retry_count) -> completed, forward only.

In tool_use the model gets the tool catalog and no output schema; in
final_output it gets the schema and no tools.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from agentloop.domain import InvalidStateError


class LoopPhaseKind(str, Enum):
    TOOL_USE = "tool_use"
    FINAL_OUTPUT = "final_output"
    COMPLETED = "completed"


_ORDER = {
    LoopPhaseKind.TOOL_USE: 0,
    LoopPhaseKind.FINAL_OUTPUT: 1,
    LoopPhaseKind.COMPLETED: 2,
}


class LoopPhase(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: LoopPhaseKind = LoopPhaseKind.TOOL_USE
    retry_count: int = Field(default=0, ge=0)

    @classmethod
    def tool_use(cls) -> "LoopPhase":
        return cls(kind=LoopPhaseKind.TOOL_USE)

    @classmethod
    def final_output(cls, retry_count: int = 0) -> "LoopPhase":
        return cls(kind=LoopPhaseKind.FINAL_OUTPUT, retry_count=retry_count)

    @classmethod
    def completed(cls) -> "LoopPhase":
        return cls(kind=LoopPhaseKind.COMPLETED)

    @property
    def is_tool_use(self) -> bool:
        return self.kind == LoopPhaseKind.TOOL_USE

    @property
    def is_final_output(self) -> bool:
        return self.kind == LoopPhaseKind.FINAL_OUTPUT

    @property
    def is_completed(self) -> bool:
        return self.kind == LoopPhaseKind.COMPLETED

    def transition(self, target: "LoopPhase") -> "LoopPhase":
        """Validate a move to target and return it."""
        if self.is_completed:
            raise InvalidStateError(f"cannot leave completed phase (to {target})")
        if _ORDER[target.kind] < _ORDER[self.kind]:
            raise InvalidStateError(f"phase cannot move back from {self} to {target}")
        if target.is_final_output and self.is_final_output and target.retry_count <= self.retry_count:
            raise InvalidStateError(f"retry count must grow ({self} -> {target})")
        return target

    def __str__(self) -> str:
        if self.is_final_output:
            return f"final_output({self.retry_count})"
        return self.kind.value


__all__ = ["LoopPhaseKind", "LoopPhase"]
