import logging

from guru_bot.db.models import Question, QuizSession
from guru_bot.db.repository import SessionRepository
from guru_bot.errors import (
    InvalidAnswerPayload,
    NoActiveQuestion,
    StaleAnswer,
)
from guru_bot.services.outcomes import Feedback
from guru_bot.services.payloads import AnswerPayload
from guru_bot.services.question_selector import QuestionSelector
from guru_bot.services.session_manager import SessionManager


class AnswerEvaluator:
    """Scores answers against the question in flight for a session."""

    def __init__(self, sessions: SessionManager, selector: QuestionSelector) -> None:
        self.sessions = sessions
        self.selector = selector

    def evaluate(self, session_id: int, answer: AnswerPayload) -> Feedback:
        """
        Evaluate an answer and update the session score.

        Raises:
            StaleAnswer: session finished, or the question was answered or replaced
            NoActiveQuestion: no question is awaiting an answer
            InvalidAnswerPayload: unknown question or choice
        """
        session = SessionRepository.get(session_id)
        if session is None or not session.is_active:
            raise StaleAnswer(f"session {session_id} is not active")

        question, choice_index = self._resolve(session, answer)
        self._check_pairing(session, question)

        is_correct = choice_index == question.correct_index
        updated = SessionRepository.record_answer(
            session.id, question.id, choice_index, is_correct
        )
        if updated is None:
            # Pairing consumed by a concurrent answer
            logging.info(f"Duplicate answer for question {question.id} in session {session.id}")
            raise StaleAnswer(f"question {question.id} already answered")

        finished = (
            updated.max_question is not None
            and updated.questions >= updated.max_question
        )
        if finished:
            self.sessions.complete(updated.id)

        logging.info(
            f"Session {updated.id}: question {question.id} "
            f"{'correct' if is_correct else 'wrong'}, "
            f"score {updated.correct}/{updated.questions}"
        )
        return Feedback(
            session_id=updated.id,
            is_correct=is_correct,
            correct_answer=question.correct_text,
            explanation=question.answer_info,
            correct=updated.correct,
            questions=updated.questions,
            finished=finished,
        )

    def _resolve(
        self, session: QuizSession, answer: AnswerPayload
    ) -> tuple[Question, int]:
        """Resolve the answered question and convert the answer to a choice index."""
        if answer.is_legacy:
            if session.current_question_id is None:
                raise NoActiveQuestion(f"session {session.id} has no question in flight")
            question = self.selector.pick_question_by_id(session.current_question_id)
            if question is None:
                raise InvalidAnswerPayload(f"unknown question {session.current_question_id}")
            texts = [choice.strip() for choice in question.choices]
            if answer.choice_text not in texts:
                raise InvalidAnswerPayload(f"unknown choice {answer.choice_text!r}")
            return question, texts.index(answer.choice_text)

        question = self.selector.pick_question_by_id(answer.question_id)
        if question is None:
            raise InvalidAnswerPayload(f"unknown question {answer.question_id}")
        if not 0 <= answer.choice_index < len(question.choices):
            raise InvalidAnswerPayload(
                f"choice {answer.choice_index} out of range for question {question.id}"
            )
        return question, answer.choice_index

    @staticmethod
    def _check_pairing(session: QuizSession, question: Question) -> None:
        if session.current_question_id == question.id:
            return
        if session.current_question_id is None:
            if question.id in SessionRepository.answered_question_ids(session.id):
                raise StaleAnswer(f"question {question.id} already answered")
            raise NoActiveQuestion(f"session {session.id} has no question in flight")
        raise StaleAnswer(
            f"question {question.id} replaced by {session.current_question_id}"
        )
