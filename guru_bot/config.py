from pathlib import Path
from typing import Optional
from dotenv import load_dotenv  # pip install python-dotenv
import os

PACKAGE_DIR = Path(__file__).parent
DATA_DIR = PACKAGE_DIR / "data"

# file name comes from ENV_FILE, .env otherwise
env_file = os.getenv("ENV_FILE", ".env")
load_dotenv(PACKAGE_DIR.parent / env_file)


def _flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _optional_int(name: str) -> Optional[int]:
    value = os.getenv(name, "").strip()
    return int(value) if value else None


bot_token = os.getenv("BOT_TOKEN")
database_url = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR / 'guru_bot.db'}")
questions_path = Path(os.getenv("QUESTIONS_PATH", DATA_DIR / "questions.json"))

# Per-session question cap, unlimited when unset
max_questions = _optional_int("MAX_QUESTIONS")
ask_mode = _flag("ASK_MODE", True)
default_mode = os.getenv("DEFAULT_MODE", "mixed")

log_level = os.getenv("LOG_LEVEL", "INFO").upper()
