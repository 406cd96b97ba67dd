"""Session status state machine."""

from types import MappingProxyType

import structlog

from agentchat.core.exceptions import IllegalTransitionError, SessionNotInteractiveError
from agentchat.models.chat_session import ChatSession
from agentchat.models.enums import SessionStatus

logger = structlog.get_logger()

TRANSITIONS: MappingProxyType[SessionStatus, frozenset[SessionStatus]] = MappingProxyType(
    {
        SessionStatus.ACTIVE: frozenset(
            {SessionStatus.PAUSED, SessionStatus.COMPLETED, SessionStatus.CLOSED}
        ),
        SessionStatus.PAUSED: frozenset({SessionStatus.ACTIVE, SessionStatus.CLOSED}),
        SessionStatus.COMPLETED: frozenset({SessionStatus.CLOSED}),
        SessionStatus.CLOSED: frozenset(),
    }
)

INTERACTIVE_STATUSES = frozenset({SessionStatus.ACTIVE, SessionStatus.PAUSED})
TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.CLOSED})


class SessionStateMachine:
    """Legal status transitions and the interactivity gate for sessions."""

    initial = SessionStatus.ACTIVE

    @staticmethod
    def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
        """Check whether ``current`` may move to ``target``."""
        return SessionStatus(target) in TRANSITIONS[SessionStatus(current)]

    @classmethod
    def transition(cls, current: SessionStatus, target: SessionStatus) -> SessionStatus:
        """Validate a transition and return the new status."""
        if not cls.can_transition(current, target):
            raise IllegalTransitionError(current=str(current), target=str(target))
        return SessionStatus(target)

    @staticmethod
    def is_interactive(status: SessionStatus) -> bool:
        """New messages are allowed only for ACTIVE and PAUSED sessions."""
        return SessionStatus(status) in INTERACTIVE_STATUSES

    @staticmethod
    def is_terminal(status: SessionStatus) -> bool:
        return SessionStatus(status) in TERMINAL_STATUSES

    @classmethod
    def ensure_interactive(cls, session: ChatSession) -> None:
        """Raise SessionNotInteractiveError unless the session accepts messages."""
        if not cls.is_interactive(session.status):
            raise SessionNotInteractiveError(
                session_id=session.id, status=str(session.status)
            )

    @staticmethod
    def can_start_turn(status: SessionStatus) -> bool:
        """AI turns run only for ACTIVE sessions; PAUSED ones accept messages only."""
        return SessionStatus(status) is SessionStatus.ACTIVE

    @classmethod
    def ensure_can_start_turn(cls, session: ChatSession) -> None:
        """Raise SessionNotInteractiveError unless an AI turn may start."""
        if not cls.can_start_turn(session.status):
            raise SessionNotInteractiveError(
                session_id=session.id, status=str(session.status)
            )

    @classmethod
    def apply(cls, session: ChatSession, target: SessionStatus) -> ChatSession:
        """Move ``session`` to ``target`` in place, refreshing ``updated_at``."""
        previous = session.status
        session.status = cls.transition(previous, target)
        session.touch()
        logger.info(
            "Session status changed",
            session_id=session.id,
            previous=str(previous),
            status=str(session.status),
        )
        return session
