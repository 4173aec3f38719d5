"""Telegram handlers: translate updates into lesson events.

The machine and the content generator reach the handlers through the
dispatcher's workflow data (``dp["machine"]``, ``dp["generator"]``).
"""

import structlog
from aiogram import Bot, F, Router
from aiogram.exceptions import TelegramAPIError
from aiogram.filters import Command, CommandStart
from aiogram.types import BotCommand, CallbackQuery, Message

from daily_lesson_bot.bot.render import HELP_TEXT, deliver
from daily_lesson_bot.content.generator import ContentGenerator
from daily_lesson_bot.errors import GenerationFailure
from daily_lesson_bot.lesson.machine import LessonMachine
from daily_lesson_bot.models.view import LessonReply, View, ViewKind

logger = structlog.get_logger()

router = Router(name="lesson")

BOT_COMMANDS = [
    BotCommand(command="start", description="Register and get started"),
    BotCommand(command="lesson", description="Start or continue today's lesson"),
    BotCommand(command="status", description="Today's progress"),
    BotCommand(command="skip", description="Skip the current exercise"),
    BotCommand(command="reset", description="Start today's lesson over"),
    BotCommand(command="help", description="How it works"),
]


def _notifier(bot: Bot, chat_id: int):
    async def notify(view: View) -> None:
        await deliver(bot, chat_id, [view])

    return notify


async def _send(bot: Bot, chat_id: int, reply: LessonReply) -> None:
    await deliver(bot, chat_id, reply.views)


def parse_callback(data: str | None, prefix: str, arity: int) -> list[str] | None:
    """Split ``prefix:a:b`` callback data into its ``arity`` fields."""
    parts = (data or "").split(":")
    if len(parts) != arity + 1 or parts[0] != prefix:
        return None
    return parts[1:]


# Commands


@router.message(CommandStart())
async def cmd_start(message: Message, bot: Bot, machine: LessonMachine):
    user = message.from_user
    reply = await machine.register_user(str(user.id), user.first_name or "User")
    await _send(bot, message.chat.id, reply)


@router.message(Command("lesson"))
async def cmd_lesson(message: Message, bot: Bot, machine: LessonMachine):
    chat_id = message.chat.id
    reply = await machine.start_lesson(
        str(message.from_user.id), notify=_notifier(bot, chat_id)
    )
    await _send(bot, chat_id, reply)


@router.message(Command("status"))
async def cmd_status(message: Message, bot: Bot, machine: LessonMachine):
    await _send(bot, message.chat.id, machine.status_summary(str(message.from_user.id)))


@router.message(Command("skip"))
async def cmd_skip(message: Message, bot: Bot, machine: LessonMachine):
    chat_id = message.chat.id
    reply = await machine.skip_stage(str(message.from_user.id), notify=_notifier(bot, chat_id))
    await _send(bot, chat_id, reply)


@router.message(Command("reset"))
async def cmd_reset(message: Message, bot: Bot, machine: LessonMachine):
    await _send(bot, message.chat.id, await machine.reset_lesson(str(message.from_user.id)))


@router.message(Command("help"))
async def cmd_help(message: Message):
    await message.answer(HELP_TEXT, parse_mode="HTML")


# Buttons


@router.callback_query(F.data.startswith("topic:"))
async def on_topic(callback: CallbackQuery, bot: Bot, machine: LessonMachine):
    await callback.answer()
    chat_id = callback.from_user.id
    fields = parse_callback(callback.data, "topic", 1)
    if fields is None or not fields[0].isdigit():
        await deliver(bot, chat_id, [View(kind=ViewKind.INVALID_SELECTION)])
        return
    reply = await machine.select_topic(
        str(callback.from_user.id), int(fields[0]), notify=_notifier(bot, chat_id)
    )
    await _send(bot, chat_id, reply)


@router.callback_query(F.data.startswith("ready:"))
async def on_ready(callback: CallbackQuery, bot: Bot, machine: LessonMachine):
    await callback.answer()
    chat_id = callback.from_user.id
    fields = parse_callback(callback.data, "ready", 1)
    if fields is None or not fields[0].isdigit():
        await deliver(bot, chat_id, [View(kind=ViewKind.INVALID_SELECTION)])
        return
    reply = await machine.show_question(str(callback.from_user.id), int(fields[0]))
    await _send(bot, chat_id, reply)


@router.callback_query(F.data.startswith("answer:"))
async def on_answer(callback: CallbackQuery, bot: Bot, machine: LessonMachine):
    await callback.answer()
    chat_id = callback.from_user.id
    fields = parse_callback(callback.data, "answer", 3)
    if fields is None or not (fields[0].isdigit() and fields[1].isdigit()):
        await deliver(bot, chat_id, [View(kind=ViewKind.INVALID_SELECTION)])
        return
    stage, question, letter = int(fields[0]), int(fields[1]), fields[2]
    reply = await machine.submit_task_answer(
        str(callback.from_user.id), stage, question, letter, notify=_notifier(bot, chat_id)
    )
    await _send(bot, chat_id, reply)


# Voice answers


def voice_transcriber(bot: Bot, generator: ContentGenerator, message: Message):
    """Deferred download and transcription of a voice message."""

    async def transcribe() -> str:
        try:
            buffer = await bot.download(message.voice)
        except TelegramAPIError as e:
            logger.warning("voice_download_failed", user_id=message.from_user.id, error=str(e))
            raise GenerationFailure("voice download failed", stage=3) from e
        text = await generator.transcribe_speech(buffer.getvalue())
        logger.info("voice_transcribed", user_id=message.from_user.id, chars=len(text))
        return text

    return transcribe


@router.message(F.voice)
async def on_voice(
    message: Message, bot: Bot, machine: LessonMachine, generator: ContentGenerator
):
    transcribe = voice_transcriber(bot, generator, message)
    reply = await machine.submit_speaking_response(str(message.from_user.id), transcribe)
    await _send(bot, message.chat.id, reply)


@router.message(F.text)
async def on_text(message: Message):
    await message.answer("Send /lesson to continue your lesson, or /help for the commands.")
