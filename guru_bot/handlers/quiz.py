import logging
from aiogram import Router, F
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command
from aiogram.types import Message, CallbackQuery, User

from guru_bot.errors import ModeNotSelected, QuizError
from guru_bot.handlers.common import alert_error, reply_error, user_identity
from guru_bot.handlers.render import format_feedback, format_prompt, format_summary
from guru_bot.keyboards import (
    build_answers_keyboard,
    build_modes_keyboard,
    build_navigation_keyboard,
    build_restart_keyboard,
)
from guru_bot.keyboards.builders import NEXT_TEXT
from guru_bot.services.outcomes import Prompt
from guru_bot.services.payloads import ANSWER_PREFIX, NEXT_ACTION
from guru_bot.services.quiz_service import QuizService

router = Router()


async def ask_question(msg: Message, prompt: Prompt) -> None:
    """Send a question with its answer buttons."""
    keyboard = build_answers_keyboard(prompt.choices, prompt.question_id)
    try:
        await msg.answer(
            format_prompt(prompt), reply_markup=keyboard, parse_mode="MarkdownV2"
        )
    except TelegramBadRequest as e:
        logging.warning(f"Error sending question {prompt.question_id}: {e}")
        # Fallback to plain text
        await msg.answer(prompt.text[:4000], reply_markup=keyboard)


async def ask_mode(msg: Message, quiz: QuizService) -> None:
    await msg.answer(
        "Choose a quiz mode:", reply_markup=build_modes_keyboard(quiz.available_modes())
    )


async def send_next(msg: Message, user: User, quiz: QuizService) -> None:
    """Serve the next question of the active session."""
    try:
        prompt = quiz.next_question(user_identity(user))
    except ModeNotSelected as e:
        await reply_error(msg, user, e)
        await ask_mode(msg, quiz)
        return
    except QuizError as e:
        await reply_error(msg, user, e)
        return

    await msg.answer("Moving to the next step! 🔄")
    await ask_question(msg, prompt)


@router.message(Command("next"))
async def cmd_next(msg: Message, quiz: QuizService) -> None:
    """Handle /next command."""
    await send_next(msg, msg.from_user, quiz)


@router.message(F.text == NEXT_TEXT)
async def hears_next(msg: Message, quiz: QuizService) -> None:
    await send_next(msg, msg.from_user, quiz)


@router.callback_query(F.data == NEXT_ACTION)
async def callback_next(cb: CallbackQuery, quiz: QuizService) -> None:
    await cb.answer()
    await send_next(cb.message, cb.from_user, quiz)


@router.callback_query(F.data.startswith(ANSWER_PREFIX))
async def handle_answer(cb: CallbackQuery, quiz: QuizService) -> None:
    """Handle user's answer."""
    try:
        outcome = quiz.answer(user_identity(cb.from_user), cb.data)
    except ModeNotSelected as e:
        await alert_error(cb, e)
        await ask_mode(cb.message, quiz)
        return
    except QuizError as e:
        await alert_error(cb, e)
        return

    if outcome.prompt is not None:
        # Nothing was in flight, a fresh question was served instead
        await cb.answer()
        await ask_question(cb.message, outcome.prompt)
        return

    feedback = outcome.feedback
    await cb.answer("✅ Correct!" if feedback.is_correct else "❌ Wrong")

    try:
        await cb.message.edit_reply_markup(reply_markup=None)
    except TelegramBadRequest:
        # Message is too old or already edited
        pass

    if outcome.summary is not None:
        await cb.message.answer(format_feedback(feedback), parse_mode="MarkdownV2")
        await cb.message.answer(
            format_summary(outcome.summary),
            reply_markup=build_restart_keyboard(),
            parse_mode="MarkdownV2",
        )
    else:
        await cb.message.answer(
            format_feedback(feedback),
            reply_markup=build_navigation_keyboard(),
            parse_mode="MarkdownV2",
        )


@router.callback_query()
async def unknown_callback(cb: CallbackQuery) -> None:
    """Handle unknown callbacks."""
    await cb.answer(
        "⚠️ This action is outdated or the quiz is over. Press /start", show_alert=True
    )
