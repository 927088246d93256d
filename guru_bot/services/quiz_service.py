import logging
import random
from typing import Optional

from guru_bot.db.models import Question, QuizSession
from guru_bot.db.repository import SessionRepository
from guru_bot.errors import (
    ModeNotSelected,
    NoActiveQuestion,
    SessionNotFound,
    StaleAnswer,
    UnknownMode,
)
from guru_bot.services.answer_evaluator import AnswerEvaluator
from guru_bot.services.outcomes import (
    AnswerLine,
    AnswerOutcome,
    Prompt,
    StartOutcome,
    Summary,
)
from guru_bot.services.payloads import parse_answer_payload
from guru_bot.services.question_selector import MIXED_MODE, QuestionSelector
from guru_bot.services.session_manager import SessionManager
from guru_bot.states import SessionPhase, phase_of

RECOVERY_NOTICE = "🤔 That question is no longer waiting for an answer. Here is a new one:"


class QuizService:
    """Entry point for every chat event of the quiz."""

    def __init__(
        self,
        max_questions: Optional[int] = None,
        ask_mode: bool = True,
        default_mode: str = MIXED_MODE,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.ask_mode = ask_mode
        self.default_mode = default_mode
        self.sessions = SessionManager(max_question=max_questions)
        self.selector = QuestionSelector(rng)
        self.evaluator = AnswerEvaluator(self.sessions, self.selector)

    def start(self, user_identity: str, handle: str) -> StartOutcome:
        """Resume the unused session of a user or open a new one."""
        mode = None if self.ask_mode else self.default_mode
        session, resumed = self.sessions.resolve_or_create_session(
            user_identity, handle, mode=mode
        )
        prompt = None
        if phase_of(session) == SessionPhase.in_session:
            prompt = self.current_prompt(session)
        return StartOutcome(
            session=session,
            resumed=resumed,
            modes=self.selector.available_modes(),
            prompt=prompt,
        )

    def available_modes(self) -> list[str]:
        return self.selector.available_modes()

    def choose_mode(self, user_identity: str, handle: str, mode: str) -> Prompt:
        """Start a new session in the chosen mode and serve its first question."""
        if mode not in self.selector.available_modes():
            raise UnknownMode(f"unknown mode {mode!r}")
        session_id = self.sessions.begin_session_with_mode(user_identity, handle, mode)
        return self._serve(self.sessions.get(session_id))

    def next_question(self, user_identity: str) -> Prompt:
        """Serve a new question, replacing the one in flight."""
        session = self.sessions.get_active(user_identity)
        if phase_of(session) == SessionPhase.awaiting_mode:
            raise ModeNotSelected(f"session {session.id} has no mode")
        return self._serve(session)

    def current_prompt(self, session: QuizSession) -> Prompt:
        """Show the question in flight again, or serve one if there is none."""
        if session.current_question_id is not None:
            question = self.selector.pick_question_by_id(session.current_question_id)
            if question is not None:
                return self._prompt(session, question)
        return self._serve(session)

    def answer(self, user_identity: str, payload: str) -> AnswerOutcome:
        """
        Evaluate an answer button press.

        When no question is in flight the answer is not scored; a new question
        is served and paired instead.
        """
        answer = parse_answer_payload(payload)
        session = self._active_for_answer(user_identity)
        if phase_of(session) == SessionPhase.awaiting_mode:
            raise ModeNotSelected(f"session {session.id} has no mode")

        try:
            feedback = self.evaluator.evaluate(session.id, answer)
        except NoActiveQuestion:
            logging.info(f"No question in flight for session {session.id}, serving a new one")
            return AnswerOutcome(prompt=self._serve(session, notice=RECOVERY_NOTICE))

        summary = None
        if feedback.finished:
            summary = self.summary(self.sessions.get(session.id))
        return AnswerOutcome(feedback=feedback, summary=summary)

    def finish(self, user_identity: str) -> Summary:
        """Complete the active session, or repeat the summary of the last one."""
        session = SessionRepository.get_active(user_identity)
        if session is None:
            session = self.sessions.get_latest(user_identity)
            if session is None:
                raise SessionNotFound(f"no session for {user_identity}")
        return self.summary(self.sessions.complete(session.id))

    @staticmethod
    def summary(session: QuizSession) -> Summary:
        answers = [
            AnswerLine(
                question=question.question,
                correct_answer=question.correct_text,
                is_correct=answer.is_correct,
            )
            for answer, question in SessionRepository.get_answers(session.id)
        ]
        return Summary(
            session_id=session.id,
            handle=session.handle,
            mode=session.mode,
            correct=session.correct,
            questions=session.questions,
            answers=answers,
        )

    def _active_for_answer(self, user_identity: str) -> QuizSession:
        session = SessionRepository.get_active(user_identity)
        if session is not None:
            return session
        if self.sessions.get_latest(user_identity) is not None:
            raise StaleAnswer(f"no active session for {user_identity}")
        raise SessionNotFound(f"no session for {user_identity}")

    def _serve(self, session: QuizSession, notice: Optional[str] = None) -> Prompt:
        question = self.selector.serve(session)
        return self._prompt(session, question, notice)

    @staticmethod
    def _prompt(
        session: QuizSession, question: Question, notice: Optional[str] = None
    ) -> Prompt:
        return Prompt(
            session_id=session.id,
            question_id=question.id,
            text=question.question,
            choices=list(question.choices),
            number=session.questions + 1,
            notice=notice,
        )
