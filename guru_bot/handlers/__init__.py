import logging
from aiogram import Router
from aiogram.types import ErrorEvent

from guru_bot.handlers.start import router as start_router
from guru_bot.handlers.finish import router as finish_router
from guru_bot.handlers.quiz import router as quiz_router


async def on_error(event: ErrorEvent) -> bool:
    """Log anything the handlers did not handle themselves."""
    logging.exception(
        f"Unhandled error for update {event.update.update_id}",
        exc_info=event.exception,
    )
    return True


def setup_routers() -> Router:
    """Setup and return the main router with all sub-routers."""
    router = Router()
    router.include_router(start_router)
    router.include_router(finish_router)
    # Last: holds the catch-all callback handler
    router.include_router(quiz_router)
    router.errors.register(on_error)
    return router


__all__ = ["setup_routers"]
