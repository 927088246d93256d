from dataclasses import dataclass, field
from typing import Optional

from guru_bot.db.models import QuizSession


def accuracy(correct: int, questions: int) -> int:
    """Accuracy percentage, 0 when nothing was answered yet."""
    if questions == 0:
        return 0
    return round(100 * correct / questions)


@dataclass(frozen=True)
class Prompt:
    """Question ready to be shown to the user."""

    session_id: int
    question_id: int
    text: str
    choices: list[str]
    number: int  # 1-based position of the question within the session
    notice: Optional[str] = None


@dataclass(frozen=True)
class Feedback:
    """Result of evaluating one answer."""

    session_id: int
    is_correct: bool
    correct_answer: str
    explanation: Optional[str]
    correct: int
    questions: int
    finished: bool = False

    @property
    def accuracy(self) -> int:
        return accuracy(self.correct, self.questions)

    @property
    def score(self) -> str:
        return f"{self.correct}/{self.questions}"


@dataclass(frozen=True)
class AnswerLine:
    question: str
    correct_answer: str
    is_correct: bool


@dataclass(frozen=True)
class Summary:
    """Final result of a session."""

    session_id: int
    handle: str
    mode: Optional[str]
    correct: int
    questions: int
    answers: list[AnswerLine] = field(default_factory=list)

    @property
    def accuracy(self) -> int:
        return accuracy(self.correct, self.questions)


@dataclass(frozen=True)
class StartOutcome:
    """Session resolved by a start event."""

    session: QuizSession
    resumed: bool
    modes: list[str]
    prompt: Optional[Prompt] = None


@dataclass(frozen=True)
class AnswerOutcome:
    """
    Reply to an answer event.

    Either ``feedback`` is set, or the answer could not be scored and
    ``prompt`` carries a freshly served question.
    """

    feedback: Optional[Feedback] = None
    prompt: Optional[Prompt] = None
    summary: Optional[Summary] = None
