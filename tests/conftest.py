from __future__ import annotations

import random
from pathlib import Path
from typing import Iterator

import pytest
from sqlalchemy import func, select

from guru_bot.db import models
from guru_bot.db.models import STATUS_ACTIVE, Question, QuizSession, get_session, init_db
from guru_bot.db.repository import QuestionRepository
from guru_bot.services.quiz_service import QuizService

QUESTIONS = [
    {
        "question": "A1?",
        "choices": ["a", "b", "c"],
        "answer": "a",
        "answer_info": "a is right",
        "tags": ["A"],
    },
    {
        "question": "A2?",
        "choices": ["a", "b", "c"],
        "answer_index": 1,
        "tags": ["A"],
    },
    {
        "question": "A3?",
        "choices": ["x", "y"],
        "answer": "y",
        "tags": ["A"],
    },
    {
        "question": "B1?",
        "choices": ["p", "q"],
        "answer": "q",
        "answer_info": "q because of reasons",
        "tags": ["B"],
    },
    {
        "question": "B2?",
        "choices": ["p", "q", "r"],
        "answer_index": 2,
        "tags": ["B"],
    },
]


@pytest.fixture(autouse=True)
def database(tmp_path: Path) -> Iterator[str]:
    """Fresh SQLite database per test."""

    url = f"sqlite:///{tmp_path / 'quiz.db'}"
    init_db(url)
    yield url
    models.engine.dispose()


@pytest.fixture
def questions() -> list[Question]:
    """Five questions: three tagged A, two tagged B."""

    return QuestionRepository.add_many(QUESTIONS)


@pytest.fixture
def by_text(questions: list[Question]) -> dict[str, Question]:
    return {q.question: q for q in questions}


@pytest.fixture
def quiz(questions: list[Question]) -> QuizService:
    return QuizService(rng=random.Random(7))


@pytest.fixture
def wrong_choice():
    """Index of some wrong choice of a question."""

    def pick(question: Question) -> int:
        return next(
            i for i in range(len(question.choices)) if i != question.correct_index
        )

    return pick


@pytest.fixture
def active_count():
    """Number of active sessions stored for a user."""

    def count(user_identity: str) -> int:
        with get_session() as session:
            return session.scalar(
                select(func.count())
                .select_from(QuizSession)
                .where(
                    QuizSession.user_identity == user_identity,
                    QuizSession.status == STATUS_ACTIVE,
                )
            )

    return count
