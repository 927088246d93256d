import logging
from typing import Optional

from guru_bot.db.models import QuizSession
from guru_bot.db.repository import ActiveSessionConflict, SessionRepository
from guru_bot.errors import SessionNotFound


class SessionManager:
    """Resolves, creates and closes quiz sessions."""

    def __init__(self, max_question: Optional[int] = None) -> None:
        self.max_question = max_question

    def resolve_or_create_session(
        self, user_identity: str, handle: str, mode: Optional[str] = None
    ) -> tuple[QuizSession, bool]:
        """
        Get the session a start event should continue.

        An unused active session is resumed unchanged. Otherwise a fresh
        session is created and any previous active one is completed.

        Returns:
            tuple: (session, resumed)
        """
        latest = SessionRepository.get_latest(user_identity)
        if latest is not None and latest.is_active and not latest.is_used:
            return latest, True

        try:
            session = SessionRepository.create(
                user_identity, handle, mode=mode, max_question=self.max_question
            )
        except ActiveSessionConflict:
            # A concurrent start created the session first
            session = SessionRepository.get_active(user_identity)
            if session is None:
                raise
            return session, True

        logging.info(f"Session {session.id} created for {user_identity}")
        return session, False

    def begin_session_with_mode(
        self, user_identity: str, handle: str, mode: str
    ) -> int:
        """Always create a new session in the given mode."""
        try:
            session = SessionRepository.create(
                user_identity, handle, mode=mode, max_question=self.max_question
            )
        except ActiveSessionConflict:
            # A concurrent mode selection created the session first
            session = SessionRepository.get_active(user_identity)
            if session is None:
                raise
            return session.id

        logging.info(f"Session {session.id} started for {user_identity} in {mode}")
        return session.id

    def advance(self, session_id: int, questions_delta: int, correct_delta: int) -> None:
        """Atomically add to the counters of an active session."""
        if questions_delta < 0 or correct_delta < 0 or correct_delta > questions_delta:
            raise ValueError("counters can only grow and correct cannot exceed questions")
        if not SessionRepository.advance(session_id, questions_delta, correct_delta):
            raise SessionNotFound(f"no active session {session_id}")

    def complete(self, session_id: int) -> QuizSession:
        """Mark a session completed. Completing it again is a no-op."""
        if SessionRepository.complete(session_id):
            logging.info(f"Session {session_id} completed")
        session = SessionRepository.get(session_id)
        if session is None:
            raise SessionNotFound(f"no session {session_id}")
        return session

    def get(self, session_id: int) -> QuizSession:
        session = SessionRepository.get(session_id)
        if session is None:
            raise SessionNotFound(f"no session {session_id}")
        return session

    def get_active(self, user_identity: str) -> QuizSession:
        """Get the active session of a user or raise SessionNotFound."""
        session = SessionRepository.get_active(user_identity)
        if session is None:
            raise SessionNotFound(f"no active session for {user_identity}")
        return session

    def get_latest(self, user_identity: str) -> Optional[QuizSession]:
        return SessionRepository.get_latest(user_identity)

