from guru_bot.db.models import init_db, get_session
from guru_bot.db.repository import QuestionRepository, SessionRepository

__all__ = ["init_db", "get_session", "QuestionRepository", "SessionRepository"]
