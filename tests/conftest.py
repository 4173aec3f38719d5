"""Shared fixtures: a file store in tmp_path, a fake generator and news source."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from daily_lesson_bot.config import Topic
from daily_lesson_bot.lesson.machine import LessonMachine
from daily_lesson_bot.models.lesson import (
    NewsArticle,
    SpeakingEvaluation,
    TaskQuestion,
    VocabularyWord,
)
from daily_lesson_bot.models.user_profile import UserProfile
from daily_lesson_bot.storage.file_store import FileStore

NOW = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)
USER = "42"


class Clock:
    """Settable clock for LessonMachine."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def make_question(correct: str = "B") -> TaskQuestion:
    return TaskQuestion(
        question="Waar gaat de tekst over?",
        options=["Voetbal", "Software", "Het weer"],
        correct=correct,
    )


def make_article(key: str, topic_id: str = "software") -> NewsArticle:
    return NewsArticle(
        title=f"Article {key}",
        description="Short description",
        content="Full content",
        url=f"https://news.example/{key}",
        topic_id=topic_id,
    )


def make_evaluation(score: int = 2) -> SpeakingEvaluation:
    return SpeakingEvaluation(
        grammar_note="Good word order.",
        vocab_note="Nice use of 'gisteren'.",
        polished_text="Gisteren heb ik gewerkt.",
        summary="Well done!",
        score=score,
    )


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def store(tmp_path):
    return FileStore(tmp_path / "data")


@pytest.fixture
def catalogue():
    return [
        Topic(id="software", query="software", label="Software"),
        Topic(id="startups", query="startups", label="Startups"),
    ]


@pytest.fixture
def generator():
    gen = MagicMock()
    gen.adapt_article = AsyncMock(return_value="Een korte tekst over software.")
    gen.write_listening_text = AsyncMock(return_value="Luister naar deze tekst.")
    gen.write_speaking_prompt = AsyncMock(return_value="Vertel over je werkdag.")
    gen.generate_questions = AsyncMock(
        side_effect=lambda text, count: [make_question("B") for _ in range(count)]
    )
    gen.extract_vocabulary = AsyncMock(
        return_value=[
            VocabularyWord(word="lezen", translation="to read"),
            VocabularyWord(word="werken", translation="to work"),
        ]
    )
    gen.synthesize_speech = AsyncMock(return_value=b"OggS-fake-audio")
    gen.evaluate_response = AsyncMock(return_value=make_evaluation())
    return gen


@pytest.fixture
def topic_source():
    source = MagicMock()
    source.search = AsyncMock(
        side_effect=lambda query, max_results=10, topic_id=None: [
            make_article(f"{topic_id}-{i}", topic_id) for i in range(3)
        ]
    )
    return source


@pytest.fixture
def machine(store, generator, topic_source, catalogue, clock):
    return LessonMachine(
        store=store,
        generator=generator,
        topic_source=topic_source,
        catalogue=catalogue,
        clock=clock,
    )


@pytest.fixture
def registered(store):
    profile = UserProfile(user_id=USER, display_name="Anna", topics=["software", "startups"])
    store.save_profile(profile)
    return profile


def generation_calls(gen) -> int:
    return sum(
        getattr(gen, name).await_count
        for name in (
            "adapt_article",
            "write_listening_text",
            "write_speaking_prompt",
            "generate_questions",
            "extract_vocabulary",
            "synthesize_speech",
            "evaluate_response",
        )
    )
