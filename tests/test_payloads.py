import pytest

from guru_bot.errors import InvalidAnswerPayload
from guru_bot.services.payloads import (
    AnswerPayload,
    encode_answer,
    encode_mode,
    parse_answer_payload,
    parse_mode_payload,
)


def test_canonical_answer_payload() -> None:
    assert encode_answer(12, 3) == "answer:12_3"
    assert parse_answer_payload("answer:12_3") == AnswerPayload(
        question_id=12, choice_index=3
    )


def test_legacy_text_payload() -> None:
    payload = parse_answer_payload("answer: Delegated Proof of Stake ")
    assert payload.is_legacy
    assert payload.choice_text == "Delegated Proof of Stake"


def test_legacy_text_with_underscore_is_not_mistaken_for_canonical() -> None:
    payload = parse_answer_payload("answer:snake_case")
    assert payload.is_legacy
    assert payload.choice_text == "snake_case"


@pytest.mark.parametrize(
    "data",
    ["", "mode:mixed", "answer:", "answer:   ", "answer:12_x", "answer:12_-1"],
)
def test_malformed_answer_payloads(data: str) -> None:
    with pytest.raises(InvalidAnswerPayload):
        parse_answer_payload(data)


def test_mode_payload() -> None:
    assert parse_mode_payload(encode_mode("staking")) == "staking"
    with pytest.raises(InvalidAnswerPayload):
        parse_mode_payload("answer:1_1")
