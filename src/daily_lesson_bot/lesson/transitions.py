"""Pure lesson transitions.

Each function takes a record (never mutated) and returns a Transition with
the updated copy, the views to show, and optionally the task stage whose
content has to be generated next. Events that do not fit the record raise
a LessonError subclass.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field

from daily_lesson_bot.errors import InvalidSelection, StaleAction, StaleSelection
from daily_lesson_bot.lesson import views
from daily_lesson_bot.models.lesson import (
    OPTION_LETTERS,
    STAGE_NAMES,
    LessonState,
    ListeningTask,
    NewsArticle,
    ReadingTask,
    SpeakingEvaluation,
    SpeakingTask,
    Stage,
    StageResult,
    TaskProgress,
)
from daily_lesson_bot.models.view import View, ViewKind

QUIZ_STAGES = (1, 2)


class Transition(BaseModel):
    state: LessonState
    views: list[View] = Field(default_factory=list)
    generate: int | None = None


def new_lesson(day: date, topics: list[NewsArticle], now: datetime) -> Transition:
    state = LessonState(day=day, available_topics=topics, created_at=now)
    return Transition(state=state, views=[views.topic_choice_view(state)])


def _enter_next_stage(state: LessonState) -> int | None:
    """Move to the following stage; returns its task number, if any."""
    state.stage = state.stage.next()
    number = state.stage.task_number
    if number is not None:
        state.progress[number] = TaskProgress.zero(number)
    return number


def _current_task(state: LessonState, stage_number: int):
    """Return the payload of ``stage_number`` if it is the stage in progress."""
    if state.stage.task_number != stage_number:
        raise StaleAction(f"stage {stage_number} is not in progress", stage=stage_number)
    task = state.task(stage_number)
    if task is None:
        raise StaleAction(f"stage {stage_number} has no content yet", stage=stage_number)
    return task


def select_topic(state: LessonState, index: int) -> Transition:
    if state.stage is not Stage.SELECTING_TOPIC:
        raise StaleSelection("topic already chosen")
    if not 0 <= index < len(state.available_topics):
        raise InvalidSelection(f"no topic {index}")

    state = state.model_copy(deep=True)
    state.selected_topic_index = index
    state.selected_topic = state.available_topics[index]
    state.available_topics = []
    return Transition(state=state, generate=_enter_next_stage(state))


def resume(state: LessonState) -> Transition:
    """Re-render a live record, repairing a missing cursor on the way."""
    if state.stage in (Stage.SELECTING_TOPIC, Stage.DONE):
        return Transition(state=state, views=views.resume_views(state))

    number = state.stage.task_number
    if number not in state.progress:
        state = state.model_copy(deep=True)
        state.progress[number] = TaskProgress.zero(number)
    if state.task(number) is None:
        return Transition(state=state, generate=number)
    return Transition(state=state, views=views.resume_views(state))


def attach_task(
    state: LessonState | None,
    number: int,
    payload: ReadingTask | ListeningTask | SpeakingTask,
) -> LessonState | None:
    """Store freshly generated content, or return None if it is no longer wanted.

    Content is kept only when the record is still on that stage and nothing
    was attached in the meantime.
    """
    if state is None or state.stage.task_number != number or state.task(number) is not None:
        return None
    state = state.model_copy(deep=True)
    state.set_task(number, payload)
    state.progress.setdefault(number, TaskProgress.zero(number))
    return state


def show_question(state: LessonState, stage_number: int) -> list[View]:
    if stage_number not in QUIZ_STAGES:
        raise InvalidSelection(f"stage {stage_number} has no questions", stage=stage_number)
    task = _current_task(state, stage_number)
    progress = state.progress.get(stage_number) or TaskProgress.zero(stage_number)
    return [views.question_view(stage_number, task, progress.current_question)]


def _finish_quiz(state: LessonState, number: int, task: ReadingTask | ListeningTask) -> None:
    progress = state.progress.pop(number)
    state.results[number] = StageResult(
        correct=views.count_correct(task, progress),
        total=len(task.questions),
    )
    state.collected_words.extend(task.words)
    _enter_next_stage(state)


def submit_answer(
    state: LessonState, stage_number: int, question_index: int, choice: str
) -> Transition:
    if stage_number not in QUIZ_STAGES:
        raise StaleAction(f"stage {stage_number} takes no answers", stage=stage_number)
    task = _current_task(state, stage_number)
    if not 0 <= question_index < len(task.questions):
        raise InvalidSelection(f"no question {question_index}", stage=stage_number)
    choice = choice.strip().upper()
    if choice not in OPTION_LETTERS:
        raise InvalidSelection(f"no option {choice!r}", stage=stage_number)

    state = state.model_copy(deep=True)
    progress = state.progress.setdefault(stage_number, TaskProgress.zero(stage_number))
    if question_index > progress.current_question:
        raise StaleAction(f"question {question_index} not reached yet", stage=stage_number)

    question = task.questions[question_index]
    progress.answers[question_index] = choice
    feedback = View(
        kind=ViewKind.ANSWER_FEEDBACK,
        stage=stage_number,
        question_index=question_index,
        question=question,
        choice=choice,
        correct=choice == question.correct,
        score=views.count_correct(task, progress),
        total=len(progress.answers),
    )

    # A repeated tap on an earlier question only updates its answer.
    if question_index < progress.current_question:
        return Transition(state=state, views=[feedback])

    if question_index + 1 < len(task.questions):
        progress.current_question = question_index + 1
        next_view = views.question_view(stage_number, task, progress.current_question)
        return Transition(state=state, views=[feedback, next_view])

    _finish_quiz(state, stage_number, task)
    result = state.results[stage_number]
    complete = View(
        kind=ViewKind.STAGE_COMPLETE,
        stage=stage_number,
        name=STAGE_NAMES[stage_number],
        score=result.correct,
        total=result.total,
        words=task.words,
    )
    return Transition(state=state, views=[feedback, complete], generate=stage_number + 1)


def check_speaking(state: LessonState | None) -> SpeakingTask:
    """Return the speaking task if a spoken answer is expected right now."""
    if state is None:
        raise StaleAction("no lesson in progress", stage=3)
    task = _current_task(state, 3)
    progress = state.progress.get(3)
    if progress is not None and not progress.awaiting_response:
        raise StaleAction("no spoken answer expected", stage=3)
    return task


def complete_speaking(
    state: LessonState | None,
    transcript: str,
    evaluation: SpeakingEvaluation,
    now: datetime,
) -> Transition:
    task = check_speaking(state)

    state = state.model_copy(deep=True)
    state.progress.pop(3, None)
    state.results[3] = StageResult(
        correct=evaluation.score,
        total=3,
        transcript=transcript,
        evaluation=evaluation,
    )
    state.collected_words.extend(task.words)
    _enter_next_stage(state)
    state.completed_at = now
    feedback = View(
        kind=ViewKind.SPEAKING_FEEDBACK,
        stage=3,
        text=transcript,
        evaluation=evaluation,
        score=evaluation.score,
        words=task.words,
    )
    return Transition(state=state, views=[feedback, views.lesson_done_view(state)])


def skip_stage(state: LessonState, now: datetime) -> Transition:
    number = state.stage.task_number
    if number is None:
        raise StaleAction("nothing to skip")

    state = state.model_copy(deep=True)
    state.progress.pop(number, None)
    state.results[number] = StageResult(skipped=True)
    skipped = View(kind=ViewKind.STAGE_SKIPPED, stage=number, name=STAGE_NAMES[number])
    following = _enter_next_stage(state)
    if following is None:
        state.completed_at = now
        return Transition(state=state, views=[skipped, views.lesson_done_view(state)])
    return Transition(state=state, views=[skipped], generate=following)
