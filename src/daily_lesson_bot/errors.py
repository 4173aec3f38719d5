"""Lesson error taxonomy.

Every error maps to a view kind so that the state machine can turn it into
guidance for the user instead of a system failure.
"""

from daily_lesson_bot.models.view import ViewKind


class LessonError(Exception):
    """Base class for per-event, recoverable lesson errors."""

    view_kind: ViewKind = ViewKind.STALE_ACTION

    def __init__(self, message: str = "", stage: int | None = None):
        super().__init__(message or self.__class__.__name__)
        self.stage = stage


class NotRegistered(LessonError):
    """No profile exists for the user."""

    view_kind = ViewKind.NOT_REGISTERED


class StaleAction(LessonError):
    """The event does not match the current stage."""

    view_kind = ViewKind.STALE_ACTION


class StaleSelection(StaleAction):
    """A topic tap arrived after topic selection was over."""

    view_kind = ViewKind.STALE_SELECTION


class InvalidSelection(LessonError):
    """Out-of-range topic, question, or option."""

    view_kind = ViewKind.INVALID_SELECTION


class GenerationFailure(LessonError):
    """The content generator failed or returned unusable output."""

    view_kind = ViewKind.GENERATION_FAILED


class TranscriptionEmpty(LessonError):
    """A voice answer produced no usable text."""

    view_kind = ViewKind.TRANSCRIPTION_EMPTY


class DeliveryFailure(LessonError):
    """Sending a message to one recipient failed."""

    def __init__(self, user_id: str, reason: str = ""):
        super().__init__(f"delivery to {user_id} failed: {reason}")
        self.user_id = user_id
