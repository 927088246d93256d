import functools
import json
import logging
from pathlib import Path
from typing import Callable, Iterable, Optional, TypeVar
from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from guru_bot.db.models import (
    STATUS_ACTIVE,
    STATUS_COMPLETED,
    Question,
    QuizSession,
    SessionAnswer,
    get_session,
    utcnow,
)
from guru_bot.errors import PersistenceError

T = TypeVar("T")


class ActiveSessionConflict(PersistenceError):
    """Another active session for the same user was created concurrently."""


def reads(func_: Callable[..., T]) -> Callable[..., T]:
    """Idempotent read: retried once on a connection level failure."""

    @functools.wraps(func_)
    def wrapper(*args, **kwargs):
        try:
            return func_(*args, **kwargs)
        except OperationalError as e:
            logging.warning(f"{func_.__name__} failed, retrying once: {e}")
        except SQLAlchemyError as e:
            logging.error(f"{func_.__name__} failed: {e}")
            raise PersistenceError(str(e)) from e
        try:
            return func_(*args, **kwargs)
        except SQLAlchemyError as e:
            logging.error(f"{func_.__name__} failed: {e}")
            raise PersistenceError(str(e)) from e

    return wrapper


def writes(func_: Callable[..., T]) -> Callable[..., T]:
    """Write: never retried, failures surface as PersistenceError."""

    @functools.wraps(func_)
    def wrapper(*args, **kwargs):
        try:
            return func_(*args, **kwargs)
        except IntegrityError as e:
            logging.warning(f"{func_.__name__} rejected: {e.orig}")
            raise PersistenceError(str(e.orig)) from e
        except SQLAlchemyError as e:
            logging.error(f"{func_.__name__} failed: {e}")
            raise PersistenceError(str(e)) from e

    return wrapper


class QuestionRepository:
    """Repository for quiz questions."""

    @staticmethod
    @reads
    def get(question_id: int) -> Optional[Question]:
        """Get question by ID."""
        with get_session() as session:
            return session.get(Question, question_id)

    @staticmethod
    @reads
    def list_all() -> list[Question]:
        """Get all questions ordered by ID."""
        with get_session() as session:
            return list(session.scalars(select(Question).order_by(Question.id)))

    @staticmethod
    @reads
    def count() -> int:
        with get_session() as session:
            return session.scalar(select(func.count()).select_from(Question))

    @staticmethod
    @writes
    def add_many(items: Iterable[dict]) -> list[Question]:
        """Store questions given as dicts with the questions table fields."""
        with get_session() as session:
            questions = [question_from_dict(item) for item in items]
            session.add_all(questions)
            session.commit()
            return questions

    @staticmethod
    def load_from_file(path: Path) -> list[Question]:
        """Load questions from a JSON file into the store."""
        with path.open(encoding="utf-8") as f:
            items = json.load(f)
        return QuestionRepository.add_many(items)

    @staticmethod
    def seed_if_empty(path: Path) -> int:
        """Fill an empty question store from a JSON file. Returns the number loaded."""
        if QuestionRepository.count() > 0:
            return 0
        if not path.exists():
            logging.warning(f"Question store is empty and {path} is missing")
            return 0
        loaded = QuestionRepository.load_from_file(path)
        logging.info(f"Loaded {len(loaded)} questions from {path}")
        return len(loaded)


def question_from_dict(item: dict) -> Question:
    """Build a Question, accepting either a correct text or a correct index."""
    choices = list(item["choices"])
    answer = item.get("answer")
    answer_index = item.get("answer_index")

    if answer_index is not None:
        answer_index = int(answer_index)
        if not 0 <= answer_index < len(choices):
            raise ValueError(f"answer_index out of range: {item['question']!r}")
        if answer is None:
            answer = choices[answer_index]
    elif answer not in choices:
        raise ValueError(f"answer is not one of the choices: {item['question']!r}")

    return Question(
        question=item["question"],
        choices=choices,
        answer=answer,
        answer_index=answer_index,
        answer_info=item.get("answer_info"),
        tags=item.get("tags"),
    )


class SessionRepository:
    """Repository for quiz sessions and their answers."""

    @staticmethod
    @reads
    def get(session_id: int) -> Optional[QuizSession]:
        """Get session by ID."""
        with get_session() as session:
            return session.get(QuizSession, session_id)

    @staticmethod
    @reads
    def get_latest(user_identity: str) -> Optional[QuizSession]:
        """Get the most recently created session of a user."""
        with get_session() as session:
            return session.scalars(
                select(QuizSession)
                .where(QuizSession.user_identity == user_identity)
                .order_by(QuizSession.created_at.desc(), QuizSession.id.desc())
                .limit(1)
            ).first()

    @staticmethod
    @reads
    def get_active(user_identity: str) -> Optional[QuizSession]:
        """Get the active session of a user."""
        with get_session() as session:
            return session.scalars(
                select(QuizSession).where(
                    QuizSession.user_identity == user_identity,
                    QuizSession.status == STATUS_ACTIVE,
                )
            ).first()

    @staticmethod
    @writes
    def create(
        user_identity: str,
        handle: str,
        mode: Optional[str] = None,
        max_question: Optional[int] = None,
    ) -> QuizSession:
        """Create an active session, completing the user's previous active one."""
        now = utcnow()
        with get_session() as session:
            session.execute(
                update(QuizSession)
                .where(
                    QuizSession.user_identity == user_identity,
                    QuizSession.status == STATUS_ACTIVE,
                )
                .values(
                    status=STATUS_COMPLETED,
                    current_question_id=None,
                    completed_at=now,
                    updated_at=now,
                )
            )
            quiz_session = QuizSession(
                user_identity=user_identity,
                handle=handle,
                mode=mode,
                max_question=max_question,
                questions=0,
                correct=0,
                status=STATUS_ACTIVE,
                created_at=now,
                updated_at=now,
            )
            session.add(quiz_session)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise ActiveSessionConflict(str(e.orig)) from e
            return quiz_session

    @staticmethod
    @writes
    def advance(session_id: int, questions_delta: int, correct_delta: int) -> bool:
        """Increment counters of an active session in a single statement."""
        with get_session() as session:
            result = session.execute(
                update(QuizSession)
                .where(
                    QuizSession.id == session_id,
                    QuizSession.status == STATUS_ACTIVE,
                    QuizSession.correct + correct_delta
                    <= QuizSession.questions + questions_delta,
                )
                .values(
                    questions=QuizSession.questions + questions_delta,
                    correct=QuizSession.correct + correct_delta,
                    updated_at=utcnow(),
                )
            )
            session.commit()
            return result.rowcount == 1

    @staticmethod
    @writes
    def set_pairing(session_id: int, question_id: Optional[int]) -> bool:
        """Record the question awaiting an answer, replacing any previous one."""
        with get_session() as session:
            result = session.execute(
                update(QuizSession)
                .where(
                    QuizSession.id == session_id,
                    QuizSession.status == STATUS_ACTIVE,
                )
                .values(current_question_id=question_id, updated_at=utcnow())
            )
            session.commit()
            return result.rowcount == 1

    @staticmethod
    @writes
    def record_answer(
        session_id: int, question_id: int, choice_index: int, is_correct: bool
    ) -> Optional[QuizSession]:
        """
        Consume the pairing and score the answer in one transaction.

        The pairing is cleared and the counters are incremented by a single
        UPDATE conditioned on the pairing still pointing at ``question_id``.

        Returns:
            The updated session, or None when the pairing was already consumed.
        """
        now = utcnow()
        with get_session() as session:
            result = session.execute(
                update(QuizSession)
                .where(
                    QuizSession.id == session_id,
                    QuizSession.status == STATUS_ACTIVE,
                    QuizSession.current_question_id == question_id,
                )
                .values(
                    current_question_id=None,
                    questions=QuizSession.questions + 1,
                    correct=QuizSession.correct + int(is_correct),
                    updated_at=now,
                )
            )
            if result.rowcount != 1:
                session.rollback()
                return None

            session.add(
                SessionAnswer(
                    session_id=session_id,
                    question_id=question_id,
                    choice_index=choice_index,
                    is_correct=is_correct,
                    answered_at=now,
                )
            )
            session.commit()
            return session.get(QuizSession, session_id, populate_existing=True)

    @staticmethod
    @writes
    def complete(session_id: int) -> bool:
        """Mark an active session completed. Returns False if it was not active."""
        now = utcnow()
        with get_session() as session:
            result = session.execute(
                update(QuizSession)
                .where(
                    QuizSession.id == session_id,
                    QuizSession.status == STATUS_ACTIVE,
                )
                .values(
                    status=STATUS_COMPLETED,
                    current_question_id=None,
                    completed_at=now,
                    updated_at=now,
                )
            )
            session.commit()
            return result.rowcount == 1

    @staticmethod
    @reads
    def answered_question_ids(session_id: int) -> set[int]:
        """Get IDs of questions already answered in a session."""
        with get_session() as session:
            return set(
                session.scalars(
                    select(SessionAnswer.question_id).where(
                        SessionAnswer.session_id == session_id
                    )
                )
            )

    @staticmethod
    @reads
    def get_answers(session_id: int) -> list[tuple[SessionAnswer, Question]]:
        """Get answers of a session with their questions, in answering order."""
        with get_session() as session:
            rows = session.execute(
                select(SessionAnswer, Question)
                .join(Question, Question.id == SessionAnswer.question_id)
                .where(SessionAnswer.session_id == session_id)
                .order_by(SessionAnswer.id)
            ).all()
            return [(answer, question) for answer, question in rows]
