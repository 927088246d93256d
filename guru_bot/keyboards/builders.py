import random
from typing import Optional
from aiogram.types import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    KeyboardButton,
    ReplyKeyboardMarkup,
)

from guru_bot.services.payloads import (
    FINISH_ACTION,
    NEXT_ACTION,
    START_ACTION,
    encode_answer,
    encode_mode,
)

# Reply keyboard texts
START_TEXT = "🚀 Start"
NEXT_TEXT = "⏭️ Next"
FINISH_TEXT = "🏁 Finish"

# Mode display names
MODES = {
    "mixed": "🎲 Mixed",
    "basics": "📘 Basics",
    "accounts": "👤 Accounts",
    "staking": "🥩 Staking",
}


def get_mode_name(mode: Optional[str]) -> str:
    """Get display name for a mode."""
    if mode is None:
        return "-"
    return MODES.get(mode, mode.replace("_", " ").title())


def build_main_menu() -> ReplyKeyboardMarkup:
    """Build the persistent Start/Next/Finish keyboard."""
    return ReplyKeyboardMarkup(
        keyboard=[
            [
                KeyboardButton(text=START_TEXT),
                KeyboardButton(text=NEXT_TEXT),
                KeyboardButton(text=FINISH_TEXT),
            ]
        ],
        resize_keyboard=True,
    )


def build_modes_keyboard(modes: list[str]) -> InlineKeyboardMarkup:
    """Build keyboard for mode selection."""
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text=get_mode_name(mode), callback_data=encode_mode(mode))]
            for mode in modes
        ]
    )


def build_answers_keyboard(
    choices: list[str], question_id: int, shuffle: bool = True
) -> InlineKeyboardMarkup:
    """Build keyboard for answer choices, each button carrying its choice index."""
    indices = list(range(len(choices)))
    if shuffle:
        random.shuffle(indices)

    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(
                    text=choices[i], callback_data=encode_answer(question_id, i)
                )
            ]
            for i in indices
        ]
    )


def build_navigation_keyboard() -> InlineKeyboardMarkup:
    """Build keyboard with Next and Finish buttons."""
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(text=NEXT_TEXT, callback_data=NEXT_ACTION),
                InlineKeyboardButton(text=FINISH_TEXT, callback_data=FINISH_ACTION),
            ]
        ]
    )


def build_restart_keyboard() -> InlineKeyboardMarkup:
    """Build keyboard offering a new quiz."""
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text="🔄 Start Again", callback_data=START_ACTION)]
        ]
    )
