"""Per-user daily lesson state machine.

Every operation is one inbound event: it re-reads the user's record, applies
a pure transition, persists the result, and returns a LessonReply. Stage
advances are written before the next stage's content is generated, so a
failed or interrupted generation leaves a record that StartLesson resumes.
"""

import functools
from collections.abc import Awaitable, Callable
from datetime import date, datetime
from enum import StrEnum

import structlog

from daily_lesson_bot.config import Topic
from daily_lesson_bot.content import tasks
from daily_lesson_bot.content.generator import ContentGenerator
from daily_lesson_bot.errors import (
    GenerationFailure,
    LessonError,
    NotRegistered,
    StaleAction,
    StaleSelection,
    TranscriptionEmpty,
)
from daily_lesson_bot.lesson import transitions, views
from daily_lesson_bot.models.lesson import (
    STAGE_NAMES,
    LessonState,
    NewsArticle,
    Stage,
    utcnow,
)
from daily_lesson_bot.models.user_profile import UserProfile
from daily_lesson_bot.models.view import LessonReply, View, ViewKind
from daily_lesson_bot.news.gnews import GNewsClient, collect_daily_topics
from daily_lesson_bot.storage.file_store import FileStore

logger = structlog.get_logger()

Notify = Callable[[View], Awaitable[None]]


class DailyCategory(StrEnum):
    """Where a user stands today, for the morning broadcast."""

    NEW = "new"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


def _guarded(method):
    """Turn a LessonError raised by ``method`` into a reply that explains it."""

    @functools.wraps(method)
    async def wrapper(self: "LessonMachine", user_id: str, *args, **kwargs) -> LessonReply:
        try:
            return await method(self, user_id, *args, **kwargs)
        except LessonError as e:
            logger.info(
                "lesson_event_rejected",
                user_id=user_id,
                operation=method.__name__,
                error=type(e).__name__,
                detail=str(e),
            )
            return LessonReply(
                state=self.load_state(user_id),
                views=[View(kind=e.view_kind, stage=e.stage)],
            )

    return wrapper


class LessonMachine:
    """Drives one lesson per user per UTC day.

    Args:
        store: Durable record store.
        generator: Content generator for tasks and speaking feedback.
        topic_source: News search used to fill the daily topic cache.
        catalogue: Topic queries the daily candidates are drawn from.
        topics_per_lesson: How many candidates a user chooses from.
        results_per_topic: Articles requested per catalogue query.
        reading_questions: Questions in the reading stage.
        listening_questions: Questions in the listening stage.
        clock: Returns the current UTC time; days are its calendar date.
    """

    def __init__(
        self,
        store: FileStore,
        generator: ContentGenerator,
        topic_source: GNewsClient,
        catalogue: list[Topic],
        topics_per_lesson: int = 5,
        results_per_topic: int = 10,
        reading_questions: int = tasks.READING_QUESTIONS,
        listening_questions: int = tasks.LISTENING_QUESTIONS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.generator = generator
        self.topic_source = topic_source
        self.catalogue = catalogue
        self.topics_per_lesson = topics_per_lesson
        self.results_per_topic = results_per_topic
        self.reading_questions = reading_questions
        self.listening_questions = listening_questions
        self.clock = clock

    def today(self) -> date:
        return self.clock().date()

    def load_state(self, user_id: str) -> LessonState | None:
        """Today's record for the user; records from earlier days count as absent."""
        state = self.store.get_state(user_id)
        if state is None or not state.is_for(self.today()):
            return None
        return state

    def _require_profile(self, user_id: str) -> UserProfile:
        profile = self.store.get_profile(user_id)
        if profile is None:
            raise NotRegistered(f"no profile for {user_id}")
        return profile

    # Registration

    async def register_user(self, user_id: str, display_name: str = "User") -> LessonReply:
        profile = self.store.get_profile(user_id)
        if profile is not None:
            return LessonReply(
                state=self.load_state(user_id),
                views=[View(kind=ViewKind.WELCOME_BACK, name=profile.display_name)],
            )
        profile = UserProfile(
            user_id=user_id,
            display_name=display_name or "User",
            topics=[topic.id for topic in self.catalogue],
            created_at=self.clock(),
        )
        self.store.save_profile(profile)
        logger.info("user_registered", user_id=user_id)
        return LessonReply(views=[View(kind=ViewKind.WELCOME, name=profile.display_name)])

    # Topics

    async def _daily_topics(self, profile: UserProfile) -> list[NewsArticle]:
        day = self.today()
        cache = self.store.get_topic_cache(day, now=self.clock())
        if cache is not None:
            candidates = cache.topics
        else:
            candidates = await collect_daily_topics(
                self.topic_source,
                self.catalogue,
                limit=self.topics_per_lesson * max(len(self.catalogue), 1),
                per_topic=self.results_per_topic,
            )
            if candidates:
                self.store.set_topic_cache(day, candidates, now=self.clock())
                logger.info("daily_topics_cached", day=day.isoformat(), count=len(candidates))

        preferred = [a for a in candidates if a.topic_id in profile.topics]
        return (preferred or candidates)[: self.topics_per_lesson]

    # Generation

    async def _build_task(self, user_id: str, number: int, article: NewsArticle):
        if number == 1:
            return await tasks.build_reading_task(self.generator, article, self.reading_questions)
        if number == 2:
            name = f"{user_id}-{self.today().isoformat()}"
            return await tasks.build_listening_task(
                self.generator,
                article,
                lambda audio: self.store.save_audio(name, audio),
                self.listening_questions,
            )
        return await tasks.build_speaking_task(self.generator, article)

    async def _advance(
        self,
        user_id: str,
        transition: transitions.Transition,
        notify: Notify | None = None,
    ) -> LessonReply:
        """Persist ``transition`` and generate content for the stage it entered."""
        self.store.set_state(user_id, transition.state)
        number = transition.generate
        if number is None:
            return LessonReply(state=transition.state, views=transition.views)

        if notify is not None:
            await notify(View(kind=ViewKind.GENERATING, stage=number, name=STAGE_NAMES[number]))

        article = transition.state.selected_topic
        logger.info("task_generation_started", user_id=user_id, stage=number)
        try:
            if article is None:
                raise GenerationFailure("no topic selected", stage=number)
            payload = await self._build_task(user_id, number, article)
        except GenerationFailure as e:
            logger.warning("task_generation_failed", user_id=user_id, stage=number, error=str(e))
            return LessonReply(
                state=self.load_state(user_id),
                views=transition.views + [View(kind=ViewKind.GENERATION_FAILED, stage=number)],
            )

        fresh = self.load_state(user_id)
        updated = transitions.attach_task(fresh, number, payload)
        if updated is None:
            logger.info("generated_task_discarded", user_id=user_id, stage=number)
            return LessonReply(state=fresh, views=transition.views)

        self.store.set_state(user_id, updated)
        logger.info("task_generation_finished", user_id=user_id, stage=number)
        return LessonReply(state=updated, views=transition.views + views.resume_views(updated))

    # Lesson events

    @_guarded
    async def start_lesson(self, user_id: str, notify: Notify | None = None) -> LessonReply:
        profile = self._require_profile(user_id)
        state = self.load_state(user_id)

        if state is None or state.stage is Stage.DONE:
            topics = await self._daily_topics(profile)
            if not topics:
                logger.warning("no_topics_available", user_id=user_id)
                return LessonReply(state=state, views=[View(kind=ViewKind.NO_TOPICS)])
            transition = transitions.new_lesson(self.today(), topics, self.clock())
            logger.info("lesson_started", user_id=user_id, topics=len(topics))
            return await self._advance(user_id, transition)

        transition = transitions.resume(state)
        if transition.state == state and transition.generate is None:
            return LessonReply(state=state, views=transition.views)
        return await self._advance(user_id, transition, notify)

    @_guarded
    async def select_topic(
        self, user_id: str, index: int, notify: Notify | None = None
    ) -> LessonReply:
        self._require_profile(user_id)
        state = self.load_state(user_id)
        if state is None:
            raise StaleSelection("no lesson today")
        transition = transitions.select_topic(state, index)
        logger.info("topic_selected", user_id=user_id, index=index)
        return await self._advance(user_id, transition, notify)

    @_guarded
    async def show_question(self, user_id: str, stage_number: int) -> LessonReply:
        self._require_profile(user_id)
        state = self.load_state(user_id)
        if state is None:
            raise StaleAction("no lesson today", stage=stage_number)
        return LessonReply(state=state, views=transitions.show_question(state, stage_number))

    @_guarded
    async def submit_task_answer(
        self,
        user_id: str,
        stage_number: int,
        question_index: int,
        choice: str,
        notify: Notify | None = None,
    ) -> LessonReply:
        self._require_profile(user_id)
        state = self.load_state(user_id)
        if state is None:
            raise StaleAction("no lesson today", stage=stage_number)
        transition = transitions.submit_answer(state, stage_number, question_index, choice)
        logger.info(
            "answer_recorded",
            user_id=user_id,
            stage=stage_number,
            question=question_index,
            correct=transition.views[0].correct,
        )
        return await self._advance(user_id, transition, notify)

    @_guarded
    async def submit_speaking_response(
        self, user_id: str, transcribe: Callable[[], Awaitable[str]]
    ) -> LessonReply:
        """Evaluate a spoken answer; ``transcribe`` yields its text on demand."""
        self._require_profile(user_id)
        task = transitions.check_speaking(self.load_state(user_id))

        transcript = (await transcribe()).strip()
        if not transcript:
            raise TranscriptionEmpty("empty transcript", stage=3)
        evaluation = await self.generator.evaluate_response(task.prompt, transcript)

        fresh = self.load_state(user_id)
        transition = transitions.complete_speaking(fresh, transcript, evaluation, self.clock())
        self.store.set_state(user_id, transition.state)
        logger.info("lesson_completed", user_id=user_id, score=evaluation.score)
        return LessonReply(state=transition.state, views=transition.views)

    @_guarded
    async def skip_stage(self, user_id: str, notify: Notify | None = None) -> LessonReply:
        self._require_profile(user_id)
        state = self.load_state(user_id)
        if state is None:
            raise StaleAction("no lesson today")
        transition = transitions.skip_stage(state, self.clock())
        logger.info("stage_skipped", user_id=user_id, stage=state.stage.task_number)
        return await self._advance(user_id, transition, notify)

    @_guarded
    async def reset_lesson(self, user_id: str) -> LessonReply:
        self._require_profile(user_id)
        self.store.delete_state(user_id)
        logger.info("lesson_reset", user_id=user_id)
        return LessonReply(views=[View(kind=ViewKind.RESET_DONE)])

    # Queries

    def status_summary(self, user_id: str) -> LessonReply:
        if self.store.get_profile(user_id) is None:
            return LessonReply(views=[View(kind=ViewKind.NOT_REGISTERED)])
        state = self.load_state(user_id)
        return LessonReply(state=state, views=[views.status_view(state)])

    def daily_category(self, user_id: str) -> DailyCategory:
        state = self.load_state(user_id)
        if state is None:
            return DailyCategory.NEW
        if state.stage is Stage.DONE:
            return DailyCategory.COMPLETED
        return DailyCategory.IN_PROGRESS
