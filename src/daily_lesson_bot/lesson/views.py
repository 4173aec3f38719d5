"""Pure view construction from a lesson record.

Nothing here generates content or touches storage: every view is derived
from ``(stage, task, progress)`` alone, so re-rendering a record always gives
the same output.
"""

from daily_lesson_bot.models.lesson import (
    STAGE_NAMES,
    LessonState,
    ListeningTask,
    ReadingTask,
    SpeakingTask,
    Stage,
    TaskProgress,
)
from daily_lesson_bot.models.view import View, ViewKind


def topic_choice_view(state: LessonState) -> View:
    return View(kind=ViewKind.TOPIC_CHOICE, topics=state.available_topics)


def intro_view(stage_number: int, task: ReadingTask | ListeningTask | SpeakingTask) -> View:
    """The stage's opening message, with a 'ready' prompt where questions follow."""
    view = View(
        kind=ViewKind.TASK_INTRO,
        stage=stage_number,
        name=STAGE_NAMES[stage_number],
        words=task.words,
    )
    if isinstance(task, ReadingTask):
        view.title = task.article_title
        view.url = task.article_url or None
        view.text = task.content
        view.total = len(task.questions)
    elif isinstance(task, ListeningTask):
        view.audio_path = task.audio_path
        view.total = len(task.questions)
    else:
        view.text = task.prompt
    return view


def question_view(stage_number: int, task: ReadingTask | ListeningTask, index: int) -> View:
    return View(
        kind=ViewKind.QUESTION,
        stage=stage_number,
        name=STAGE_NAMES[stage_number],
        question_index=index,
        question=task.questions[index],
        total=len(task.questions),
    )


def count_correct(task: ReadingTask | ListeningTask, progress: TaskProgress) -> int:
    return sum(
        1
        for index, choice in progress.answers.items()
        if index < len(task.questions) and task.questions[index].correct == choice
    )


def resume_views(state: LessonState) -> list[View]:
    """Reconstruct what the user should currently see.

    Expects a task payload and progress to exist for task stages; callers
    handle the missing-payload and missing-progress cases first.
    """
    if state.stage is Stage.SELECTING_TOPIC:
        return [topic_choice_view(state)]
    if state.stage is Stage.DONE:
        return [lesson_done_view(state)]

    number = state.stage.task_number
    task = state.task(number)
    progress = state.progress.get(number) or TaskProgress.zero(number)
    if number == 3 or progress.current_question == 0:
        return [intro_view(number, task)]
    return [question_view(number, task, progress.current_question)]


def lesson_done_view(state: LessonState) -> View:
    quizzes = [r for r in state.results.values() if r.evaluation is None]
    score = sum(r.correct for r in quizzes)
    total = sum(r.total for r in quizzes)
    return View(
        kind=ViewKind.LESSON_DONE,
        words=state.collected_words,
        score=score,
        total=total,
    )


def status_view(state: LessonState | None) -> View:
    """Human-readable progress; ``state`` is None when there is no lesson today."""
    if state is None:
        return View(kind=ViewKind.STATUS, lines=["No exercises yet today."])
    if state.stage is Stage.DONE:
        return View(
            kind=ViewKind.STATUS,
            lines=["All done for today!", "You completed all 3 exercises."],
        )
    if state.stage is Stage.SELECTING_TOPIC:
        return View(kind=ViewKind.STATUS, lines=["Choose a topic to begin today's lesson."])

    current = state.stage.task_number
    lines = []
    for number, name in STAGE_NAMES.items():
        result = state.results.get(number)
        if number < current:
            mark = "⏭" if result is not None and result.skipped else "✅"
        elif number == current:
            mark = "⏳"
        else:
            mark = "⬜"
        line = f"{mark} Task {number}: {name}"
        if result is not None and not result.skipped and result.total and result.evaluation is None:
            line += f" ({result.correct}/{result.total})"
        lines.append(line)
    lines.append(f"Current task: {STAGE_NAMES[current]}")
    return View(kind=ViewKind.STATUS, stage=current, lines=lines)
