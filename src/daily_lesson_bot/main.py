"""Application entry points: the webhook server and local long polling."""

import asyncio
import logging
import os
from contextlib import asynccontextmanager

import structlog
import uvicorn
from aiogram import Bot, Dispatcher
from fastapi import FastAPI

from daily_lesson_bot.api.routes import router as api_router
from daily_lesson_bot.bot.handlers import BOT_COMMANDS
from daily_lesson_bot.bot.handlers import router as bot_router
from daily_lesson_bot.broadcast import telegram_sender
from daily_lesson_bot.config import Settings, get_settings, load_topics
from daily_lesson_bot.content.generator import ContentGenerator
from daily_lesson_bot.lesson.machine import LessonMachine
from daily_lesson_bot.news.gnews import GNewsClient
from daily_lesson_bot.storage.file_store import FileStore

# Configure structlog based on environment
is_production = os.getenv("ENV", "development").lower() == "production"

if is_production:
    # Production: JSON format for machine parsing
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
else:
    # Development: console format for human readability
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

logger = structlog.get_logger()


def build_machine(
    settings: Settings, store: FileStore, generator: ContentGenerator
) -> LessonMachine:
    return LessonMachine(
        store=store,
        generator=generator,
        topic_source=GNewsClient(settings.gnews_api_key, lang=settings.news_lang),
        catalogue=load_topics(),
        topics_per_lesson=settings.topics_per_lesson,
        results_per_topic=settings.news_results_per_topic,
        reading_questions=settings.reading_questions,
        listening_questions=settings.listening_questions,
    )


def build_generator(settings: Settings) -> ContentGenerator:
    return ContentGenerator(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        tts_model=settings.tts_model,
        tts_voice=settings.tts_voice,
        stt_model=settings.stt_model,
        language=settings.target_language,
        language_code=settings.language_code,
        level=settings.language_level,
    )


def create_dispatcher(machine: LessonMachine, generator: ContentGenerator) -> Dispatcher:
    dp = Dispatcher()
    dp["machine"] = machine
    dp["generator"] = generator
    dp.include_router(bot_router)
    return dp


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    store = FileStore(settings.data_dir)
    generator = build_generator(settings)
    machine = build_machine(settings, store, generator)
    bot = Bot(settings.telegram_bot_token)

    app.state.settings = settings
    app.state.store = store
    app.state.machine = machine
    app.state.bot = bot
    app.state.dispatcher = create_dispatcher(machine, generator)
    app.state.send = telegram_sender(bot)

    await bot.set_my_commands(BOT_COMMANDS)
    if settings.webhook_url:
        url = f"{settings.webhook_url.rstrip('/')}/api/webhook"
        await bot.set_webhook(url, secret_token=settings.webhook_secret)
        logger.info("webhook_registered", url=url)
    logger.info("app_started", data_dir=str(settings.data_dir))
    try:
        yield
    finally:
        await bot.session.close()
        logger.info("app_stopped")


app = FastAPI(title="Daily Lesson Bot", version="0.1.0", lifespan=lifespan)
app.include_router(api_router)


def main() -> None:
    """Run the webhook server."""
    settings = get_settings()
    uvicorn.run(
        "daily_lesson_bot.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level="info",
    )


async def _poll() -> None:
    settings = get_settings()
    store = FileStore(settings.data_dir)
    generator = build_generator(settings)
    machine = build_machine(settings, store, generator)
    bot = Bot(settings.telegram_bot_token)
    dp = create_dispatcher(machine, generator)

    await bot.delete_webhook(drop_pending_updates=True)
    await bot.set_my_commands(BOT_COMMANDS)
    logger.info("polling_started")
    try:
        await dp.start_polling(bot)
    finally:
        await bot.session.close()


def run_polling() -> None:
    """Run the bot with long polling for local development."""
    asyncio.run(_poll())


if __name__ == "__main__":
    main()
