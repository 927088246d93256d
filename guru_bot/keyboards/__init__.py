from guru_bot.keyboards.builders import (
    build_main_menu,
    build_modes_keyboard,
    build_answers_keyboard,
    build_navigation_keyboard,
    build_restart_keyboard,
)

__all__ = [
    "build_main_menu",
    "build_modes_keyboard",
    "build_answers_keyboard",
    "build_navigation_keyboard",
    "build_restart_keyboard",
]
