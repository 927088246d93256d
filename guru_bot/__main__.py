import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.types import BotCommand, BotCommandScopeDefault

from guru_bot import config
from guru_bot.db import QuestionRepository, init_db
from guru_bot.handlers import setup_routers
from guru_bot.services.quiz_service import QuizService


logging.basicConfig(level=config.log_level)


async def on_startup(bot: Bot) -> None:
    await bot.set_my_commands(
        [
            BotCommand(command="start", description="🚀 Start a quiz"),
            BotCommand(command="next", description="⏭️ Next question"),
            BotCommand(command="finish", description="🏁 Finish the quiz"),
        ],
        scope=BotCommandScopeDefault(),
    )
    logging.info("Command menu updated")


async def main() -> None:
    if not config.bot_token:
        raise RuntimeError("❌ BOT_TOKEN is not set")

    init_db()
    QuestionRepository.seed_if_empty(config.questions_path)

    bot = Bot(token=config.bot_token)
    dp = Dispatcher(
        quiz=QuizService(
            max_questions=config.max_questions,
            ask_mode=config.ask_mode,
            default_mode=config.default_mode,
        )
    )
    dp.startup.register(on_startup)
    dp.include_router(setup_routers())

    logging.info("Bot is running! 🚀")
    await dp.start_polling(bot)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
