"""Morning broadcast: nudge every registered user towards today's lesson."""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import date, datetime, timezone

import structlog
from aiogram import Bot
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError
from pydantic import BaseModel, Field

from daily_lesson_bot.errors import DeliveryFailure
from daily_lesson_bot.lesson.machine import DailyCategory
from daily_lesson_bot.models.user_profile import UserProfile

logger = structlog.get_logger()

Send = Callable[[str, str], Awaitable[None]]

MORNING_MESSAGES: dict[DailyCategory, list[str]] = {
    DailyCategory.NEW: [
        "☀️ <b>Goedemorgen!</b>\n\nReady for your daily {language} practice? "
        "Let's learn something new today!\n\nUse /lesson to begin!",
        "🌅 <b>Good morning!</b>\n\nYour daily {language} lesson is waiting. "
        "10 minutes today = fluent tomorrow!\n\nTap /lesson to start! 💪",
        "☕ <b>Morning!</b>\n\nTime to feed your brain some {language}! "
        "Fresh news topics are ready for you.\n\nUse /lesson to dive in! 📰",
        "🌞 <b>Goedemorgen!</b>\n\nAnother day, another step closer to mastering "
        "{language}. Let's do this!\n\nStart with /lesson! 🚀",
        "🌄 <b>Rise and shine!</b>\n\nYour daily dose of {language} awaits. "
        "Reading, listening, speaking - all in one lesson.\n\nUse /lesson to begin! ✨",
    ],
    DailyCategory.IN_PROGRESS: [
        "⏳ <b>Good morning!</b>\n\nYour {language} lesson is half way done. "
        "Pick up where you left off with /lesson!",
        "📌 <b>Morning!</b>\n\nYou have an unfinished {language} lesson waiting. "
        "Send /lesson to continue.",
    ],
    DailyCategory.COMPLETED: [
        "🏆 <b>Good morning!</b>\n\nToday's {language} lesson is already done. "
        "Great work, see you tomorrow!",
    ],
}


def pick_message(category: DailyCategory, day: date, language: str = "Dutch") -> str:
    """The category's message for ``day``; rotates by day of month."""
    messages = MORNING_MESSAGES[category]
    return messages[day.day % len(messages)].format(language=language)


class BroadcastStats(BaseModel):
    total: int = 0
    sent: int = 0
    failed: int = 0
    by_category: dict[str, int] = Field(default_factory=dict)


def telegram_sender(bot: Bot) -> Send:
    """Send function for run_broadcast that reports failures as DeliveryFailure."""

    async def send(user_id: str, text: str) -> None:
        try:
            await bot.send_message(user_id, text, parse_mode=ParseMode.HTML)
        except TelegramAPIError as e:
            raise DeliveryFailure(user_id, str(e)) from e

    return send


async def run_broadcast(
    profiles: list[UserProfile],
    categorize: Callable[[str], DailyCategory],
    send: Send,
    delay: float = 0.035,
    day: date | None = None,
    language: str = "Dutch",
) -> BroadcastStats:
    """Message every user in turn, pausing ``delay`` seconds between sends.

    A user whose record cannot be read or whose delivery fails is counted
    as failed and the sweep moves on to the next user.
    """
    day = day or datetime.now(timezone.utc).date()
    stats = BroadcastStats(total=len(profiles))
    logger.info("broadcast_started", users=len(profiles), day=day.isoformat())

    for index, profile in enumerate(profiles):
        try:
            category = categorize(profile.user_id)
        except (OSError, ValueError) as e:
            logger.warning("broadcast_categorize_failed", user_id=profile.user_id, error=str(e))
            stats.failed += 1
            continue
        stats.by_category[category.value] = stats.by_category.get(category.value, 0) + 1
        try:
            await send(profile.user_id, pick_message(category, day, language))
            stats.sent += 1
        except DeliveryFailure as e:
            logger.warning("broadcast_delivery_failed", user_id=e.user_id, error=str(e))
            stats.failed += 1
        if delay and index < len(profiles) - 1:
            await asyncio.sleep(delay)

    logger.info("broadcast_finished", sent=stats.sent, failed=stats.failed)
    return stats
