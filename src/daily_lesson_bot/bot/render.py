"""Turn lesson views into Telegram messages."""

import html
from pathlib import Path

import structlog
from aiogram import Bot
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError
from aiogram.types import (
    FSInputFile,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    LinkPreviewOptions,
)

from daily_lesson_bot.models.lesson import OPTION_LETTERS, STAGE_NAMES, VocabularyWord
from daily_lesson_bot.models.view import View, ViewKind

logger = structlog.get_logger()

HELP_TEXT = (
    "<b>Daily lesson</b>\n\n"
    "Every day you pick a news topic and work through three exercises:\n"
    "1. Reading, with comprehension questions\n"
    "2. Listening, with comprehension questions\n"
    "3. Speaking, answered with a voice message\n\n"
    "/lesson - start or continue today's lesson\n"
    "/status - see today's progress\n"
    "/skip - skip the current exercise\n"
    "/reset - start today's lesson over\n"
    "/help - show this message"
)

_STAGE_EMOJI = {1: "📖", 2: "🎧", 3: "🗣"}
_SCORE_EMOJI = {1: "🌱", 2: "👍", 3: "🌟"}


def _e(text: str | None) -> str:
    return html.escape(text or "")


def _stage_title(view: View) -> str:
    name = view.name or STAGE_NAMES.get(view.stage or 0, "")
    return f"{_STAGE_EMOJI.get(view.stage or 0, '')} <b>Task {view.stage}: {_e(name)}</b>"


def format_words(words: list[VocabularyWord]) -> str:
    if not words:
        return ""
    lines = [f"• <b>{_e(w.word)}</b> - {_e(w.translation)}" for w in words]
    return "📚 <b>Words:</b>\n" + "\n".join(lines)


def _intro(view: View) -> str:
    parts = [_stage_title(view)]
    if view.stage == 1:
        if view.title:
            parts.append(f"<i>{_e(view.title)}</i>")
        parts.append(_e(view.text))
        if view.url:
            parts.append(f'<a href="{_e(view.url)}">Original article</a>')
    elif view.stage == 2:
        parts.append("Listen to the recording, then answer the questions.")
    else:
        parts.append(_e(view.text))
        parts.append("🎙 Answer with a voice message.")
    words = format_words(view.words)
    if words:
        parts.append(words)
    if view.total:
        parts.append(f"Ready for {view.total} questions?")
    return "\n\n".join(parts)


def _question(view: View) -> str:
    question = view.question
    lines = [
        f"<b>Question {view.question_index + 1}/{view.total}</b>",
        "",
        _e(question.question),
        "",
    ]
    lines += [f"{letter}) {_e(option)}" for letter, option in zip(OPTION_LETTERS, question.options)]
    return "\n".join(lines)


def _feedback(view: View) -> str:
    if view.correct:
        head = "✅ Correct!"
    else:
        question = view.question
        answer = question.options[question.correct_index] if question else ""
        head = f"❌ Not quite. The answer is {question.correct if question else ''}) {_e(answer)}"
    return f"{head}\nScore: {view.score}/{view.total}"


def _speaking_feedback(view: View) -> str:
    ev = view.evaluation
    parts = [
        f"{_SCORE_EMOJI.get(view.score or 0, '')} <b>Score: {view.score}/3</b>",
        f"🗒 <i>You said:</i> {_e(view.text)}",
    ]
    if ev is not None:
        parts += [
            f"<b>Grammar:</b> {_e(ev.grammar_note)}",
            f"<b>Vocabulary:</b> {_e(ev.vocab_note)}",
            f"<b>Polished version:</b>\n{_e(ev.polished_text)}",
            _e(ev.summary),
        ]
    return "\n\n".join(parts)


def render_text(view: View) -> str:
    """HTML text for one view."""
    match view.kind:
        case ViewKind.WELCOME:
            return (
                f"👋 Welcome, {_e(view.name)}!\n\n"
                "Each day you get a short lesson built from today's news.\n"
                "Send /lesson to begin."
            )
        case ViewKind.WELCOME_BACK:
            return f"👋 Welcome back, {_e(view.name)}! Send /lesson to continue."
        case ViewKind.NOT_REGISTERED:
            return "Please send /start first."
        case ViewKind.TOPIC_CHOICE:
            lines = ["📰 <b>Choose today's topic:</b>", ""]
            lines += [f"{i + 1}. {_e(article.title)}" for i, article in enumerate(view.topics)]
            return "\n".join(lines)
        case ViewKind.NO_TOPICS:
            return "😕 No news topics are available right now. Please try again later."
        case ViewKind.TASK_INTRO:
            return _intro(view)
        case ViewKind.QUESTION:
            return _question(view)
        case ViewKind.ANSWER_FEEDBACK:
            return _feedback(view)
        case ViewKind.STAGE_COMPLETE:
            return f"🎉 {_e(view.name)} done! You got {view.score}/{view.total}."
        case ViewKind.STAGE_SKIPPED:
            return f"⏭ Skipped {_e(view.name)}."
        case ViewKind.SPEAKING_FEEDBACK:
            return _speaking_feedback(view)
        case ViewKind.LESSON_DONE:
            parts = ["🏁 <b>All done for today!</b>"]
            if view.total:
                parts.append(f"Quiz score: {view.score}/{view.total}")
            words = format_words(view.words)
            if words:
                parts.append(words)
            parts.append("See you tomorrow!")
            return "\n\n".join(parts)
        case ViewKind.GENERATING:
            return f"⏳ Preparing {_e(view.name)}..."
        case ViewKind.GENERATION_FAILED:
            return (
                "⚠️ Something went wrong while preparing the exercise. "
                "Send /lesson to try again or /skip to move on."
            )
        case ViewKind.TRANSCRIPTION_EMPTY:
            return "🎙 I couldn't hear anything in that message. Please try again."
        case ViewKind.STALE_ACTION:
            return "That is not part of the current exercise. Send /lesson to see where you are."
        case ViewKind.STALE_SELECTION:
            return "Today's topic is already chosen. Send /lesson to continue."
        case ViewKind.INVALID_SELECTION:
            return "That option doesn't exist. Please use the buttons."
        case ViewKind.STATUS:
            return "📊 <b>Today</b>\n\n" + "\n".join(_e(line) for line in view.lines)
        case ViewKind.RESET_DONE:
            return "🔄 Today's lesson was reset. Send /lesson to start again."
    return ""


def render_keyboard(view: View) -> InlineKeyboardMarkup | None:
    """Inline buttons for views that expect a choice."""
    if view.kind is ViewKind.TOPIC_CHOICE:
        rows = [
            [
                InlineKeyboardButton(
                    text=f"{i + 1}. {article.title[:40]}", callback_data=f"topic:{i}"
                )
            ]
            for i, article in enumerate(view.topics)
        ]
        return InlineKeyboardMarkup(inline_keyboard=rows)
    if view.kind is ViewKind.TASK_INTRO and view.total:
        button = InlineKeyboardButton(text="I'm ready ▶️", callback_data=f"ready:{view.stage}")
        return InlineKeyboardMarkup(inline_keyboard=[[button]])
    if view.kind is ViewKind.QUESTION:
        row = [
            InlineKeyboardButton(
                text=letter,
                callback_data=f"answer:{view.stage}:{view.question_index}:{letter}",
            )
            for letter in OPTION_LETTERS
        ]
        return InlineKeyboardMarkup(inline_keyboard=[row])
    return None


async def deliver(bot: Bot, chat_id: int | str, views: list[View]) -> int:
    """Send views in order; returns how many messages went out."""
    sent = 0
    for view in views:
        if view.audio_path and Path(view.audio_path).exists():
            await bot.send_voice(chat_id, FSInputFile(view.audio_path))
            sent += 1
        text = render_text(view)
        if not text:
            continue
        try:
            await bot.send_message(
                chat_id,
                text,
                parse_mode=ParseMode.HTML,
                reply_markup=render_keyboard(view),
                link_preview_options=LinkPreviewOptions(is_disabled=True),
            )
        except TelegramAPIError:
            logger.exception("view_delivery_failed", chat_id=chat_id, kind=view.kind)
            raise
        sent += 1
    return sent
