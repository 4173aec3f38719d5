"""Daily lesson state models."""

from datetime import date, datetime, timezone
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field, field_validator

OPTION_LETTERS = ("A", "B", "C")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Stage(StrEnum):
    """Lesson stages, in the only order they may be visited."""

    SELECTING_TOPIC = "selecting_topic"
    TASK_1 = "task_1"
    TASK_2 = "task_2"
    TASK_3 = "task_3"
    DONE = "done"

    @property
    def rank(self) -> int:
        return list(Stage).index(self)

    @property
    def task_number(self) -> int | None:
        """1-3 for the task stages, None for topic selection and done."""
        if self in (Stage.TASK_1, Stage.TASK_2, Stage.TASK_3):
            return self.rank
        return None

    def next(self) -> "Stage":
        if self is Stage.DONE:
            return self
        return list(Stage)[self.rank + 1]


STAGE_NAMES: dict[int, str] = {1: "Reading", 2: "Listening", 3: "Speaking"}


class NewsArticle(BaseModel):
    """A candidate topic document offered for selection."""

    title: str
    description: str = ""
    content: str = ""
    url: str = ""
    image: str | None = None
    published_at: str | None = None
    source_name: str | None = None
    topic_id: str | None = None

    @property
    def as_prompt(self) -> str:
        return (
            f"Article title: {self.title}\n\n"
            f"Article content: {self.description}\n\n{self.content}"
        )


class TaskQuestion(BaseModel):
    """A multiple choice question with three options."""

    question: str
    options: list[str]
    correct: Literal["A", "B", "C"]

    @field_validator("options")
    @classmethod
    def _three_options(cls, value: list[str]) -> list[str]:
        if len(value) != len(OPTION_LETTERS):
            raise ValueError(f"expected 3 options, got {len(value)}")
        return value

    @field_validator("correct", mode="before")
    @classmethod
    def _normalize_letter(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @property
    def correct_index(self) -> int:
        return OPTION_LETTERS.index(self.correct)


class VocabularyWord(BaseModel):
    word: str
    translation: str


class ReadingTask(BaseModel):
    article_title: str
    article_url: str = ""
    content: str
    questions: list[TaskQuestion]
    words: list[VocabularyWord] = Field(default_factory=list)


class ListeningTask(BaseModel):
    transcript: str
    audio_path: str | None = None
    questions: list[TaskQuestion]
    words: list[VocabularyWord] = Field(default_factory=list)


class SpeakingTask(BaseModel):
    prompt: str
    words: list[VocabularyWord] = Field(default_factory=list)


class SpeakingEvaluation(BaseModel):
    """Feedback on a spoken answer."""

    grammar_note: str
    vocab_note: str
    polished_text: str
    summary: str
    score: int = Field(ge=1, le=3)


class TaskProgress(BaseModel):
    """Within-stage cursor.

    Quiz stages use current_question and answers; the speaking stage uses
    awaiting_response.
    """

    current_question: int = 0
    answers: dict[int, str] = Field(default_factory=dict)
    awaiting_response: bool = False

    @classmethod
    def zero(cls, stage_number: int) -> "TaskProgress":
        return cls(awaiting_response=stage_number == 3)


class StageResult(BaseModel):
    """What is kept of a stage once the user has moved past it."""

    correct: int = 0
    total: int = 0
    skipped: bool = False
    transcript: str | None = None
    evaluation: SpeakingEvaluation | None = None


class LessonState(BaseModel):
    """One user's lesson for one calendar day."""

    day: date
    stage: Stage = Stage.SELECTING_TOPIC
    available_topics: list[NewsArticle] = Field(default_factory=list)
    selected_topic_index: int | None = None
    selected_topic: NewsArticle | None = None
    reading: ReadingTask | None = None
    listening: ListeningTask | None = None
    speaking: SpeakingTask | None = None
    progress: dict[int, TaskProgress] = Field(default_factory=dict)
    results: dict[int, StageResult] = Field(default_factory=dict)
    collected_words: list[VocabularyWord] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None

    def task(self, number: int) -> ReadingTask | ListeningTask | SpeakingTask | None:
        return {1: self.reading, 2: self.listening, 3: self.speaking}[number]

    def set_task(self, number: int, payload) -> None:
        setattr(self, {1: "reading", 2: "listening", 3: "speaking"}[number], payload)

    def is_for(self, day: date) -> bool:
        return self.day == day


class DailyTopicsCache(BaseModel):
    """Candidate topics shared by all users for one day."""

    day: date
    topics: list[NewsArticle]
    fetched_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime
