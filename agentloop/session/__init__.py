from agentloop.session.session import CONTINUE_MESSAGE, ConversationalSession
from agentloop.session.status import SessionStatus, SessionStatusKind

__all__ = ["ConversationalSession", "CONTINUE_MESSAGE", "SessionStatus", "SessionStatusKind"]
