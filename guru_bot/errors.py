class QuizError(Exception):
    """Base class for errors recoverable within a single chat interaction."""

    user_message = "⚠️ Something went wrong. Please try again."

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail or self.user_message)
        self.detail = detail


class PersistenceError(QuizError):
    """Store unreachable or write rejected."""

    user_message = "⚠️ Could not reach the quiz storage. Please try again in a moment."


class NoActiveQuestion(QuizError):
    """Answer arrived while no question is awaiting an answer."""

    user_message = "🤔 There is no question waiting for an answer."


class NoQuestionAvailable(QuizError):
    """No question matches the session mode."""

    user_message = "😕 No questions are available for this mode yet."


class InvalidAnswerPayload(QuizError):
    """Malformed answer button payload or unknown question."""

    user_message = "❌ This answer could not be processed."


class StaleAnswer(QuizError):
    """Answer refers to a question that was already answered or replaced."""

    user_message = "⚠️ This question has already been answered."


class SessionNotFound(QuizError):
    user_message = "No quiz in progress. Press /start to begin."


class ModeNotSelected(QuizError):
    user_message = "Choose a quiz mode first."


class UnknownMode(QuizError):
    user_message = "❌ Unknown quiz mode."
