import re

from guru_bot.errors import QuizError
from guru_bot.keyboards.builders import get_mode_name
from guru_bot.services.outcomes import Feedback, Prompt, Summary


def escape_md(text: str) -> str:
    """Escape special characters for MarkdownV2."""
    return re.sub(r"([_*\[\]()~`>#+\-=|{}.!\\])", r"\\\1", text)


def format_prompt(prompt: Prompt) -> str:
    """Format a question for MarkdownV2."""
    lines = prompt.text.splitlines() or [""]
    caption = f"❓ _Question {prompt.number}_\n\n*{escape_md(lines[0])}*"
    if len(lines) > 1:
        caption += "\n" + "\n".join(escape_md(line) for line in lines[1:])
    if prompt.notice:
        caption = f"{escape_md(prompt.notice)}\n\n{caption}"
    return caption


def format_feedback(feedback: Feedback) -> str:
    lines = [
        "✅ *Correct\\!*" if feedback.is_correct else "❌ *Wrong\\!*",
        f"Correct answer: _{escape_md(feedback.correct_answer)}_",
    ]
    if feedback.explanation:
        lines.append(f"💡 {escape_md(feedback.explanation)}")
    lines.append(
        f"Score: *{feedback.score}* \\({feedback.accuracy}%\\)"
    )
    return "\n".join(lines)


def format_summary(summary: Summary) -> str:
    """Format the final result with per-question details."""
    text = (
        f"🏁 *Quiz finished, {escape_md(summary.handle)}\\!*\n\n"
        f"🎯 Mode: *{escape_md(get_mode_name(summary.mode))}*\n"
        f"✨ Score: *{summary.correct}* of *{summary.questions}* "
        f"\\({summary.accuracy}%\\)"
    )

    # Details only while the message stays short
    if summary.answers and len(summary.answers) <= 20:
        lines = []
        for i, item in enumerate(summary.answers, start=1):
            mark = "✅" if item.is_correct else "❌"
            q_text = item.question.splitlines()[0][:50]
            lines.append(
                f"{mark} *Question {i}:* {escape_md(q_text)}\n"
                f"   _Answer: {escape_md(item.correct_answer)}_"
            )
        text += "\n\n" + "\n\n".join(lines)
    return text


def error_text(error: QuizError) -> str:
    """Plain text shown to the user for a quiz error."""
    return error.user_message
