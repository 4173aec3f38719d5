"""Tests for the morning broadcast."""

from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from aiogram.exceptions import TelegramAPIError

from daily_lesson_bot.broadcast import (
    MORNING_MESSAGES,
    pick_message,
    run_broadcast,
    telegram_sender,
)
from daily_lesson_bot.errors import DeliveryFailure
from daily_lesson_bot.lesson.machine import DailyCategory
from daily_lesson_bot.models.user_profile import UserProfile

DAY = date(2026, 3, 2)


def _profiles(n):
    return [UserProfile(user_id=str(i)) for i in range(n)]


class TestPickMessage:
    def test_rotates_by_day_of_month(self):
        messages = MORNING_MESSAGES[DailyCategory.NEW]
        expected = messages[2 % len(messages)].format(language="Dutch")
        assert pick_message(DailyCategory.NEW, DAY) == expected

    def test_language_is_filled_in(self):
        for category in DailyCategory:
            text = pick_message(category, DAY, language="German")
            assert "German" in text
            assert "{language}" not in text


class TestRunBroadcast:
    async def test_sends_to_everyone(self):
        send = AsyncMock()
        stats = await run_broadcast(
            _profiles(3), lambda uid: DailyCategory.NEW, send, delay=0, day=DAY
        )
        assert (stats.total, stats.sent, stats.failed) == (3, 3, 0)
        assert [c.args[0] for c in send.await_args_list] == ["0", "1", "2"]

    async def test_failure_does_not_stop_sweep(self):
        async def send(user_id, text):
            if user_id == "1":
                raise DeliveryFailure(user_id, "blocked")

        stats = await run_broadcast(
            _profiles(3), lambda uid: DailyCategory.NEW, send, delay=0, day=DAY
        )
        assert (stats.sent, stats.failed) == (2, 1)

    async def test_counts_categories(self):
        categories = {
            "0": DailyCategory.NEW,
            "1": DailyCategory.IN_PROGRESS,
            "2": DailyCategory.NEW,
        }
        stats = await run_broadcast(_profiles(3), categories.get, AsyncMock(), delay=0, day=DAY)
        assert stats.by_category == {"new": 2, "in_progress": 1}

    async def test_waits_between_messages(self):
        with patch("daily_lesson_bot.broadcast.asyncio.sleep", new=AsyncMock()) as sleep:
            await run_broadcast(
                _profiles(3), lambda uid: DailyCategory.NEW, AsyncMock(), delay=0.035
            )
        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.035)


    async def test_unreadable_record_does_not_stop_sweep(self, machine, store):
        store.save_profile(UserProfile(user_id="42"))
        store.save_profile(UserProfile(user_id="7"))
        (store.root / "states" / "42.json").write_text("{truncated")
        send = AsyncMock()
        stats = await run_broadcast(
            store.list_profiles(), machine.daily_category, send, delay=0, day=DAY
        )
        assert (stats.sent, stats.failed) == (2, 0)
        assert sorted(c.args[0] for c in send.await_args_list) == ["42", "7"]

    async def test_categorize_error_counts_as_failure(self):
        def categorize(user_id):
            if user_id == "0":
                raise OSError("permission denied")
            return DailyCategory.NEW

        send = AsyncMock()
        stats = await run_broadcast(_profiles(2), categorize, send, delay=0, day=DAY)
        assert (stats.total, stats.sent, stats.failed) == (2, 1, 1)
        send.assert_awaited_once()
        assert stats.by_category == {"new": 1}


class TestTelegramSender:
    async def test_wraps_api_errors(self):
        bot = MagicMock()
        error = TelegramAPIError(method=MagicMock(), message="Forbidden")
        bot.send_message = AsyncMock(side_effect=error)
        with pytest.raises(DeliveryFailure) as exc_info:
            await telegram_sender(bot)("7", "hi")
        assert exc_info.value.user_id == "7"

    async def test_sends_html(self):
        bot = MagicMock()
        bot.send_message = AsyncMock()
        await telegram_sender(bot)("7", "<b>hi</b>")
        assert bot.send_message.await_args.kwargs["parse_mode"] == "HTML"
