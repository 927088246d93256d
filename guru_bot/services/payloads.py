from dataclasses import dataclass
from typing import Optional

from guru_bot.errors import InvalidAnswerPayload

ANSWER_PREFIX = "answer:"
MODE_PREFIX = "mode:"

START_ACTION = "start_command"
NEXT_ACTION = "next_command"
FINISH_ACTION = "finish_command"


@dataclass(frozen=True)
class AnswerPayload:
    """
    Answer submitted by a button press.

    Canonical payloads carry the question ID and choice index. Legacy payloads
    carry only the choice text; it is resolved against the in-flight question.
    """

    question_id: Optional[int] = None
    choice_index: Optional[int] = None
    choice_text: Optional[str] = None

    @property
    def is_legacy(self) -> bool:
        return self.question_id is None


def encode_answer(question_id: int, choice_index: int) -> str:
    return f"{ANSWER_PREFIX}{question_id}_{choice_index}"


def encode_mode(mode: str) -> str:
    return f"{MODE_PREFIX}{mode}"


def parse_answer_payload(data: str) -> AnswerPayload:
    """Parse ``answer:<questionId>_<choiceIndex>`` or legacy ``answer:<choiceText>``."""
    if not data or not data.startswith(ANSWER_PREFIX):
        raise InvalidAnswerPayload(f"not an answer payload: {data!r}")

    body = data[len(ANSWER_PREFIX):]
    if not body.strip():
        raise InvalidAnswerPayload(f"empty answer payload: {data!r}")

    qid_str, sep, idx_str = body.rpartition("_")
    if sep and qid_str.isdigit():
        try:
            choice_index = int(idx_str)
        except ValueError:
            raise InvalidAnswerPayload(f"bad choice index: {data!r}")
        if choice_index < 0:
            raise InvalidAnswerPayload(f"bad choice index: {data!r}")
        return AnswerPayload(question_id=int(qid_str), choice_index=choice_index)

    return AnswerPayload(choice_text=body.strip())


def parse_mode_payload(data: str) -> str:
    if not data or not data.startswith(MODE_PREFIX):
        raise InvalidAnswerPayload(f"not a mode payload: {data!r}")
    return data[len(MODE_PREFIX):]
