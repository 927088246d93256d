from aiogram import Router, F
from aiogram.filters import Command
from aiogram.types import Message, CallbackQuery, User

from guru_bot.errors import QuizError
from guru_bot.handlers.common import (
    alert_error,
    reply_error,
    user_handle,
    user_identity,
)
from guru_bot.handlers.quiz import ask_question
from guru_bot.handlers.render import escape_md
from guru_bot.keyboards import build_main_menu, build_modes_keyboard
from guru_bot.keyboards.builders import START_TEXT, get_mode_name
from guru_bot.services.payloads import MODE_PREFIX, START_ACTION, parse_mode_payload
from guru_bot.services.quiz_service import QuizService

router = Router()


async def send_start(msg: Message, user: User, quiz: QuizService) -> None:
    """Resolve the user's session and show mode choice or the pending question."""
    try:
        outcome = quiz.start(user_identity(user), user_handle(user))
    except QuizError as e:
        await reply_error(msg, user, e)
        return

    if outcome.prompt is not None:
        greeting = "Welcome back to XPR Guru Bot! 🚀" if outcome.resumed else (
            "Welcome to XPR Guru Bot! 🚀"
        )
        await msg.answer(
            f"{greeting}\nUse the buttons below to navigate:",
            reply_markup=build_main_menu(),
        )
        await ask_question(msg, outcome.prompt)
        return

    await msg.answer(
        "Welcome to XPR Guru Bot! 🚀\nUse the buttons below to navigate:",
        reply_markup=build_main_menu(),
    )
    await msg.answer(
        "Choose a quiz mode:", reply_markup=build_modes_keyboard(outcome.modes)
    )


@router.message(Command("start"))
async def cmd_start(msg: Message, quiz: QuizService) -> None:
    """Handle /start command."""
    await send_start(msg, msg.from_user, quiz)


@router.message(F.text == START_TEXT)
async def hears_start(msg: Message, quiz: QuizService) -> None:
    await send_start(msg, msg.from_user, quiz)


@router.callback_query(F.data == START_ACTION)
async def callback_start(cb: CallbackQuery, quiz: QuizService) -> None:
    await cb.answer()
    await send_start(cb.message, cb.from_user, quiz)


@router.callback_query(F.data.startswith(MODE_PREFIX))
async def choose_mode(cb: CallbackQuery, quiz: QuizService) -> None:
    """Handle mode selection and serve the first question."""
    try:
        mode = parse_mode_payload(cb.data)
        prompt = quiz.choose_mode(
            user_identity(cb.from_user), user_handle(cb.from_user), mode
        )
    except QuizError as e:
        await alert_error(cb, e)
        return

    await cb.answer()
    await cb.message.edit_text(
        f"Mode: *{escape_md(get_mode_name(mode))}* ✅\n\nLet's go\\!",
        parse_mode="MarkdownV2",
    )
    await ask_question(cb.message, prompt)
