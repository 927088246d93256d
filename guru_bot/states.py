from enum import Enum

from guru_bot.db.models import QuizSession


class SessionPhase(str, Enum):
    """Phases of a quiz session, derived from the stored session row."""

    awaiting_mode = "awaiting_mode"  # Session created, no mode chosen yet
    in_session = "in_session"  # Question/answer cycle
    completed = "completed"  # Finished, superseded by the next /start


def phase_of(session: QuizSession) -> SessionPhase:
    if not session.is_active:
        return SessionPhase.completed
    if session.mode is None:
        return SessionPhase.awaiting_mode
    return SessionPhase.in_session
