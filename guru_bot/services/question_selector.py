import logging
import random
from typing import Iterable, Optional

from guru_bot.db.models import Question, QuizSession
from guru_bot.db.repository import QuestionRepository, SessionRepository
from guru_bot.errors import NoQuestionAvailable, SessionNotFound

MIXED_MODE = "mixed"


class QuestionSelector:
    """Picks questions for a session mode and pairs them with sessions."""

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng or random.Random()

    @staticmethod
    def available_modes() -> list[str]:
        """Get "mixed" followed by every tag present in the question store."""
        tags = set()
        for question in QuestionRepository.list_all():
            tags.update(question.tags or [])
        return [MIXED_MODE] + sorted(tags - {MIXED_MODE})

    @staticmethod
    def candidates(mode: str) -> list[Question]:
        """Get questions matching a mode."""
        questions = QuestionRepository.list_all()
        if mode == MIXED_MODE:
            return questions
        return [q for q in questions if q.has_tag(mode)]

    def pick_question(self, mode: str, exclude: Iterable[int] = ()) -> Question:
        """
        Pick a random question for a mode.

        Questions in ``exclude`` are skipped while other candidates remain.

        Raises:
            NoQuestionAvailable: no question matches the mode
        """
        candidates = self.candidates(mode)
        if not candidates:
            raise NoQuestionAvailable(f"no questions for mode {mode!r}")

        excluded = set(exclude)
        fresh = [q for q in candidates if q.id not in excluded]
        return self.rng.choice(fresh or candidates)

    @staticmethod
    def pick_question_by_id(question_id: int) -> Optional[Question]:
        return QuestionRepository.get(question_id)

    def serve(self, session: QuizSession) -> Question:
        """Pick the next question for a session and record it as in flight."""
        answered = SessionRepository.answered_question_ids(session.id)
        question = self.pick_question(session.mode or MIXED_MODE, exclude=answered)
        if not SessionRepository.set_pairing(session.id, question.id):
            raise SessionNotFound(f"no active session {session.id}")
        logging.debug(f"Session {session.id} paired with question {question.id}")
        return question
