from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    create_engine,
    text,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from guru_bot import config

Base = declarative_base()

SessionLocal = sessionmaker(expire_on_commit=False)
engine: Optional[Engine] = None

STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Question(Base):
    """Quiz question with its choices. Rows are never modified once stored."""

    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    question = Column(Text, nullable=False)
    choices = Column(JSON, nullable=False)  # ordered list of choice strings
    answer = Column(Text, nullable=False)  # correct choice text
    answer_index = Column(Integer, nullable=True)
    answer_info = Column(Text, nullable=True)  # explanation shown after answering
    tags = Column(JSON, nullable=True)

    @property
    def correct_index(self) -> int:
        """Index of the correct choice, preferring the stored index over the text."""
        if self.answer_index is not None:
            return self.answer_index
        return self.choices.index(self.answer)

    @property
    def correct_text(self) -> str:
        return self.choices[self.correct_index]

    def has_tag(self, tag: str) -> bool:
        return tag in (self.tags or [])


class QuizSession(Base):
    """One quiz attempt by one user."""

    __tablename__ = "sessions"
    __table_args__ = (
        # At most one active session per user
        Index(
            "uq_sessions_active_user",
            "user_identity",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_identity = Column(String(64), nullable=False, index=True)
    handle = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    mode = Column(String(50), nullable=True)  # NULL until a mode is chosen
    questions = Column(Integer, nullable=False, default=0)
    correct = Column(Integer, nullable=False, default=0)
    max_question = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default=STATUS_ACTIVE)

    # In-flight pairing: question currently awaiting an answer
    current_question_id = Column(Integer, ForeignKey("questions.id"), nullable=True)

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    @property
    def is_used(self) -> bool:
        return self.questions >= 1


class SessionAnswer(Base):
    """Answer given within a session."""

    __tablename__ = "session_answers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("sessions.id"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False)
    choice_index = Column(Integer, nullable=False)
    is_correct = Column(Boolean, nullable=False)
    answered_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


def configure_engine(url: str) -> Engine:
    """Create the engine for ``url`` and bind the session factory to it."""
    global engine

    parsed = make_url(url)
    connect_args = {}
    if parsed.drivername.startswith("sqlite"):
        # Repository calls may come from more than one thread
        connect_args["check_same_thread"] = False
        if parsed.database:
            Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)

    if engine is not None:
        engine.dispose()
    engine = create_engine(
        url, echo=False, pool_pre_ping=True, connect_args=connect_args
    )
    SessionLocal.configure(bind=engine)
    return engine


def init_db(url: Optional[str] = None) -> None:
    """Initialize the database and create tables."""
    configure_engine(url or config.database_url)
    Base.metadata.create_all(engine)


def get_session() -> Session:
    """Get a database session."""
    return SessionLocal()
