"""Stage task builders.

Each builder runs its generator calls one after another, since every step
works on the text produced by the previous one.
"""

from collections.abc import Callable

import structlog

from daily_lesson_bot.content.generator import ContentGenerator
from daily_lesson_bot.errors import GenerationFailure
from daily_lesson_bot.models.lesson import (
    ListeningTask,
    NewsArticle,
    ReadingTask,
    SpeakingTask,
)

logger = structlog.get_logger()

READING_QUESTIONS = 3
LISTENING_QUESTIONS = 2


async def build_reading_task(
    generator: ContentGenerator,
    article: NewsArticle,
    question_count: int = READING_QUESTIONS,
) -> ReadingTask:
    text = await generator.adapt_article(article)
    questions = await generator.generate_questions(text, question_count)
    words = await generator.extract_vocabulary(text)
    return ReadingTask(
        article_title=article.title,
        article_url=article.url,
        content=text,
        questions=questions,
        words=words,
    )


async def build_listening_task(
    generator: ContentGenerator,
    article: NewsArticle,
    save_audio: Callable[[bytes], str],
    question_count: int = LISTENING_QUESTIONS,
) -> ListeningTask:
    """Build the listening task; ``save_audio`` persists the clip and returns its path."""
    text = await generator.write_listening_text(article)
    questions = await generator.generate_questions(text, question_count)
    words = await generator.extract_vocabulary(text)
    audio = await generator.synthesize_speech(text)
    try:
        audio_path = save_audio(audio)
    except OSError as e:
        logger.warning("listening_audio_save_failed", error=str(e))
        raise GenerationFailure(f"could not save audio: {e}", stage=2) from e
    logger.info("listening_audio_saved", path=audio_path, size=len(audio))
    return ListeningTask(
        transcript=text,
        audio_path=audio_path,
        questions=questions,
        words=words,
    )


async def build_speaking_task(generator: ContentGenerator, article: NewsArticle) -> SpeakingTask:
    prompt = await generator.write_speaking_prompt(article)
    words = await generator.extract_vocabulary(prompt)
    return SpeakingTask(prompt=prompt, words=words)
