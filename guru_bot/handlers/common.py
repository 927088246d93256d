import logging
from aiogram.types import CallbackQuery, Message, User

from guru_bot.errors import PersistenceError, QuizError
from guru_bot.handlers.render import error_text


def user_identity(user: User) -> str:
    """Stable identity of a Telegram user."""
    return f"tg:{user.id}"


def user_handle(user: User) -> str:
    """Display handle of a Telegram user."""
    if user.username:
        return f"@{user.username}"
    return user.full_name or f"id:{user.id}"


def log_quiz_error(user: User, error: QuizError) -> None:
    if isinstance(error, PersistenceError):
        logging.error(f"Storage failure for {user_identity(user)}: {error}")
    else:
        logging.info(f"{type(error).__name__} for {user_identity(user)}: {error}")


async def reply_error(msg: Message, user: User, error: QuizError) -> None:
    log_quiz_error(user, error)
    await msg.answer(error_text(error))


async def alert_error(cb: CallbackQuery, error: QuizError) -> None:
    log_quiz_error(cb.from_user, error)
    await cb.answer(error_text(error), show_alert=True)
