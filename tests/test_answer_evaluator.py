import random
import threading

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session as OrmSession

from guru_bot.db.models import Question
from guru_bot.db.repository import SessionRepository
from guru_bot.errors import (
    InvalidAnswerPayload,
    NoActiveQuestion,
    PersistenceError,
    QuizError,
    StaleAnswer,
)
from guru_bot.services.answer_evaluator import AnswerEvaluator
from guru_bot.services.payloads import AnswerPayload
from guru_bot.services.question_selector import QuestionSelector
from guru_bot.services.session_manager import SessionManager


@pytest.fixture
def manager() -> SessionManager:
    return SessionManager()


@pytest.fixture
def selector() -> QuestionSelector:
    return QuestionSelector(random.Random(3))


@pytest.fixture
def evaluator(manager: SessionManager, selector: QuestionSelector) -> AnswerEvaluator:
    return AnswerEvaluator(manager, selector)


@pytest.fixture
def session_id(questions: list[Question], manager: SessionManager) -> int:
    return manager.begin_session_with_mode("tg:1", "@alice", "mixed")


def serve(selector: QuestionSelector, session_id: int) -> Question:
    return selector.serve(SessionRepository.get(session_id))


def test_correct_answer(evaluator, selector, session_id) -> None:
    question = serve(selector, session_id)

    feedback = evaluator.evaluate(
        session_id, AnswerPayload(question.id, question.correct_index)
    )

    assert feedback.is_correct
    assert (feedback.correct, feedback.questions) == (1, 1)
    assert feedback.accuracy == 100
    assert feedback.correct_answer == question.correct_text
    assert SessionRepository.get(session_id).current_question_id is None


def test_wrong_answer(evaluator, selector, session_id, wrong_choice) -> None:
    question = serve(selector, session_id)

    feedback = evaluator.evaluate(
        session_id, AnswerPayload(question.id, wrong_choice(question))
    )

    assert not feedback.is_correct
    assert (feedback.correct, feedback.questions) == (0, 1)
    assert feedback.score == "0/1"
    assert feedback.explanation == question.answer_info


def test_index_and_text_schemes_agree(evaluator, selector, by_text) -> None:
    # "A1?" stores the answer text, "A2?" stores the answer index
    manager = SessionManager()
    for text, expected in (("A1?", 0), ("A2?", 1)):
        session_id = manager.begin_session_with_mode("tg:9", "@z", "A")
        question = by_text[text]
        SessionRepository.set_pairing(session_id, question.id)
        feedback = evaluator.evaluate(session_id, AnswerPayload(question.id, expected))
        assert feedback.is_correct


def test_legacy_text_answer_is_normalized(evaluator, selector, session_id) -> None:
    question = serve(selector, session_id)

    feedback = evaluator.evaluate(
        session_id, AnswerPayload(choice_text=question.correct_text)
    )

    assert feedback.is_correct
    assert SessionRepository.answered_question_ids(session_id) == {question.id}


def test_legacy_text_unknown_choice(evaluator, selector, session_id) -> None:
    question = serve(selector, session_id)

    with pytest.raises(InvalidAnswerPayload):
        evaluator.evaluate(session_id, AnswerPayload(choice_text="no such choice"))
    assert SessionRepository.get(session_id).current_question_id == question.id


def test_legacy_text_without_pairing(evaluator, session_id) -> None:
    with pytest.raises(NoActiveQuestion):
        evaluator.evaluate(session_id, AnswerPayload(choice_text="a"))


def test_out_of_range_choice_leaves_pairing(evaluator, selector, session_id) -> None:
    question = serve(selector, session_id)

    with pytest.raises(InvalidAnswerPayload):
        evaluator.evaluate(session_id, AnswerPayload(question.id, 99))

    stored = SessionRepository.get(session_id)
    assert stored.current_question_id == question.id
    assert stored.questions == 0


def test_unknown_question(evaluator, selector, session_id) -> None:
    serve(selector, session_id)
    with pytest.raises(InvalidAnswerPayload):
        evaluator.evaluate(session_id, AnswerPayload(4242, 0))


def test_no_pairing(evaluator, questions, session_id) -> None:
    with pytest.raises(NoActiveQuestion):
        evaluator.evaluate(session_id, AnswerPayload(questions[0].id, 0))


def test_repeated_answer_is_stale(evaluator, selector, session_id) -> None:
    question = serve(selector, session_id)
    payload = AnswerPayload(question.id, question.correct_index)
    evaluator.evaluate(session_id, payload)

    with pytest.raises(StaleAnswer):
        evaluator.evaluate(session_id, payload)

    stored = SessionRepository.get(session_id)
    assert (stored.questions, stored.correct) == (1, 1)


def test_answer_for_replaced_question_is_stale(evaluator, selector, session_id) -> None:
    old = serve(selector, session_id)
    new = serve(selector, session_id)
    while new.id == old.id:
        new = serve(selector, session_id)

    with pytest.raises(StaleAnswer):
        evaluator.evaluate(session_id, AnswerPayload(old.id, old.correct_index))
    assert SessionRepository.get(session_id).current_question_id == new.id


def test_answer_on_completed_session(evaluator, manager, selector, session_id) -> None:
    question = serve(selector, session_id)
    manager.complete(session_id)

    with pytest.raises(StaleAnswer):
        evaluator.evaluate(session_id, AnswerPayload(question.id, question.correct_index))
    assert SessionRepository.get(session_id).questions == 0


def test_score_never_exceeds_questions(evaluator, selector, session_id, wrong_choice) -> None:
    rng = random.Random(11)
    for _ in range(15):
        question = serve(selector, session_id)
        choice = question.correct_index if rng.random() < 0.5 else wrong_choice(question)
        feedback = evaluator.evaluate(session_id, AnswerPayload(question.id, choice))
        assert 0 <= feedback.correct <= feedback.questions

    stored = SessionRepository.get(session_id)
    assert stored.questions == 15
    assert stored.correct <= stored.questions


def test_max_question_cap_completes_session(questions, selector) -> None:
    manager = SessionManager(max_question=2)
    evaluator = AnswerEvaluator(manager, selector)
    session_id = manager.begin_session_with_mode("tg:5", "@cap", "mixed")

    first = serve(selector, session_id)
    feedback = evaluator.evaluate(session_id, AnswerPayload(first.id, 0))
    assert not feedback.finished

    second = serve(selector, session_id)
    feedback = evaluator.evaluate(session_id, AnswerPayload(second.id, 0))
    assert feedback.finished
    assert not SessionRepository.get(session_id).is_active


def test_concurrent_answers_score_once(evaluator, selector, session_id) -> None:
    question = serve(selector, session_id)
    payload = AnswerPayload(question.id, question.correct_index)
    barrier = threading.Barrier(2)
    results: list[object] = []

    def tap() -> None:
        barrier.wait()
        try:
            results.append(evaluator.evaluate(session_id, payload))
        except QuizError as e:
            results.append(e)

    threads = [threading.Thread(target=tap) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    scored = [r for r in results if not isinstance(r, QuizError)]
    rejected = [r for r in results if isinstance(r, QuizError)]
    assert len(scored) == 1
    # SQLite may refuse the losing writer with a lock error instead
    assert len(rejected) == 1
    assert isinstance(rejected[0], (StaleAnswer, PersistenceError))

    stored = SessionRepository.get(session_id)
    assert (stored.questions, stored.correct) == (1, 1)


def test_consumed_pairing_cannot_be_recorded_twice(questions, session_id) -> None:
    question = questions[0]
    SessionRepository.set_pairing(session_id, question.id)

    assert SessionRepository.record_answer(session_id, question.id, 0, True) is not None
    assert SessionRepository.record_answer(session_id, question.id, 0, True) is None

    stored = SessionRepository.get(session_id)
    assert (stored.questions, stored.correct) == (1, 1)


def test_failed_commit_leaves_session_unchanged(
    evaluator, selector, session_id, monkeypatch: pytest.MonkeyPatch
) -> None:
    question = serve(selector, session_id)

    def failing_commit(self) -> None:
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(OrmSession, "commit", failing_commit)
    with pytest.raises(PersistenceError):
        evaluator.evaluate(
            session_id, AnswerPayload(question.id, question.correct_index)
        )
    monkeypatch.undo()

    stored = SessionRepository.get(session_id)
    assert (stored.questions, stored.correct) == (0, 0)
    assert stored.current_question_id == question.id
    assert SessionRepository.answered_question_ids(session_id) == set()
