from aiogram import Router, F
from aiogram.filters import Command
from aiogram.types import Message, CallbackQuery, User

from guru_bot.errors import QuizError
from guru_bot.handlers.common import reply_error, user_identity
from guru_bot.handlers.render import format_summary
from guru_bot.keyboards import build_restart_keyboard
from guru_bot.keyboards.builders import FINISH_TEXT
from guru_bot.services.payloads import FINISH_ACTION
from guru_bot.services.quiz_service import QuizService

router = Router()


async def send_finish(msg: Message, user: User, quiz: QuizService) -> None:
    """Complete the active session and show its summary."""
    try:
        summary = quiz.finish(user_identity(user))
    except QuizError as e:
        await reply_error(msg, user, e)
        return

    await msg.answer(
        format_summary(summary),
        reply_markup=build_restart_keyboard(),
        parse_mode="MarkdownV2",
    )
    await msg.answer("Thank you for using XPR Guru Bot! 🎉")


@router.message(Command("finish"))
async def cmd_finish(msg: Message, quiz: QuizService) -> None:
    """Handle /finish command."""
    await send_finish(msg, msg.from_user, quiz)


@router.message(F.text == FINISH_TEXT)
async def hears_finish(msg: Message, quiz: QuizService) -> None:
    await send_finish(msg, msg.from_user, quiz)


@router.callback_query(F.data == FINISH_ACTION)
async def callback_finish(cb: CallbackQuery, quiz: QuizService) -> None:
    await cb.answer()
    await send_finish(cb.message, cb.from_user, quiz)
