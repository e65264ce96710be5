from enum import Enum

from pydantic import BaseModel, ConfigDict

from agentloop.domain import AgentStep


class SessionStatusKind(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    AWAITING_USER_INPUT = "awaiting_user_input"
    PAUSED = "paused"
    FAILED = "failed"


class SessionStatus(BaseModel):
    """Where a ConversationalSession is. Only the field matching `kind` is set."""

    model_config = ConfigDict(frozen=True)

    kind: SessionStatusKind = SessionStatusKind.IDLE
    step: AgentStep | None = None
    question: str | None = None
    error: str | None = None

    @classmethod
    def idle(cls) -> "SessionStatus":
        return cls(kind=SessionStatusKind.IDLE)

    @classmethod
    def running(cls, step: AgentStep | None = None) -> "SessionStatus":
        return cls(kind=SessionStatusKind.RUNNING, step=step)

    @classmethod
    def awaiting_user_input(cls, question: str) -> "SessionStatus":
        return cls(kind=SessionStatusKind.AWAITING_USER_INPUT, question=question)

    @classmethod
    def paused(cls) -> "SessionStatus":
        return cls(kind=SessionStatusKind.PAUSED)

    @classmethod
    def failed(cls, error: str) -> "SessionStatus":
        return cls(kind=SessionStatusKind.FAILED, error=error)

    @property
    def is_active(self) -> bool:
        return self.kind in (SessionStatusKind.RUNNING, SessionStatusKind.AWAITING_USER_INPUT)

    @property
    def can_run(self) -> bool:
        return not self.is_active

    @property
    def can_resume(self) -> bool:
        return not self.is_active

    @property
    def can_interrupt(self) -> bool:
        return self.is_active

    @property
    def can_reply(self) -> bool:
        return self.kind == SessionStatusKind.AWAITING_USER_INPUT

    @property
    def can_cancel(self) -> bool:
        return self.is_active

    @property
    def can_clear(self) -> bool:
        return not self.is_active

    def __str__(self) -> str:
        if self.kind == SessionStatusKind.RUNNING and self.step is not None:
            return f"running({self.step})"
        if self.kind == SessionStatusKind.AWAITING_USER_INPUT and self.question:
            suffix = "..." if len(self.question) > 30 else ""
            return f"awaiting_user_input({self.question[:30]}{suffix})"
        if self.kind == SessionStatusKind.FAILED:
            return f"failed({self.error})"
        return self.kind.value


__all__ = ["SessionStatusKind", "SessionStatus"]
