"""Rendering instructions returned by the lesson state machine."""

from enum import StrEnum

from pydantic import BaseModel, Field

from daily_lesson_bot.models.lesson import (
    LessonState,
    NewsArticle,
    SpeakingEvaluation,
    TaskQuestion,
    VocabularyWord,
)


class ViewKind(StrEnum):
    """What the front-end should show."""

    WELCOME = "welcome"
    WELCOME_BACK = "welcome_back"
    NOT_REGISTERED = "not_registered"
    TOPIC_CHOICE = "topic_choice"
    NO_TOPICS = "no_topics"
    TASK_INTRO = "task_intro"
    QUESTION = "question"
    ANSWER_FEEDBACK = "answer_feedback"
    STAGE_COMPLETE = "stage_complete"
    STAGE_SKIPPED = "stage_skipped"
    SPEAKING_FEEDBACK = "speaking_feedback"
    LESSON_DONE = "lesson_done"
    GENERATING = "generating"
    GENERATION_FAILED = "generation_failed"
    TRANSCRIPTION_EMPTY = "transcription_empty"
    STALE_ACTION = "stale_action"
    STALE_SELECTION = "stale_selection"
    INVALID_SELECTION = "invalid_selection"
    STATUS = "status"
    RESET_DONE = "reset_done"


class View(BaseModel):
    """A single message worth of output.

    Only the fields relevant to ``kind`` are set.
    """

    kind: ViewKind
    stage: int | None = None
    name: str | None = None
    text: str | None = None
    title: str | None = None
    url: str | None = None
    audio_path: str | None = None
    topics: list[NewsArticle] = Field(default_factory=list)
    words: list[VocabularyWord] = Field(default_factory=list)
    question_index: int | None = None
    question: TaskQuestion | None = None
    total: int | None = None
    choice: str | None = None
    correct: bool | None = None
    score: int | None = None
    evaluation: SpeakingEvaluation | None = None
    lines: list[str] = Field(default_factory=list)


class LessonReply(BaseModel):
    """Result of one inbound event: the record as stored, plus what to show."""

    state: LessonState | None = None
    views: list[View] = Field(default_factory=list)

    @property
    def kinds(self) -> list[ViewKind]:
        return [view.kind for view in self.views]
