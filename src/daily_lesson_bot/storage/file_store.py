"""Durable per-user persistence (JSON + fcntl.flock + atomic write).

Layout under the store root::

    profiles/<user_id>.json   UserProfile
    states/<user_id>.json     LessonState (one live record per user)
    topics/<YYYY-MM-DD>.json  DailyTopicsCache
    audio/<name>.ogg          synthesized listening audio
"""

import fcntl
import json
import os
import re
import tempfile
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import structlog

from daily_lesson_bot.models.lesson import DailyTopicsCache, LessonState, NewsArticle
from daily_lesson_bot.models.user_profile import UserProfile

logger = structlog.get_logger()

TOPIC_CACHE_TTL = timedelta(days=1)
_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def _check_key(key: str) -> str:
    if not _KEY_PATTERN.match(key) or key in (".", ".."):
        raise ValueError(f"Invalid storage key: {key!r}")
    return key


class FileStore:
    """Key-value store for profiles, lesson states and the daily topic cache.

    Every write replaces the whole document, so a reader never sees a
    half-written record.

    Args:
        root: Directory holding the store.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        for name in ("profiles", "states", "topics", "audio"):
            (self.root / name).mkdir(parents=True, exist_ok=True)

    def _path(self, kind: str, key: str, suffix: str = ".json") -> Path:
        return self.root / kind / f"{_check_key(key)}{suffix}"

    def _read(self, path: Path) -> dict | None:
        if not path.exists():
            return None
        with open(path, encoding="utf-8") as f:
            fcntl.flock(f, fcntl.LOCK_SH)
            try:
                return json.load(f)
            finally:
                fcntl.flock(f, fcntl.LOCK_UN)

    def _write(self, path: Path, payload: str) -> None:
        with tempfile.NamedTemporaryFile(
            "w", dir=path.parent, delete=False, suffix=".json", encoding="utf-8"
        ) as tmp:
            tmp.write(payload)
        os.replace(tmp.name, path)

    # Profiles

    def get_profile(self, user_id: str) -> UserProfile | None:
        path = self._path("profiles", user_id)
        try:
            data = self._read(path)
            return UserProfile.model_validate(data) if data is not None else None
        except ValueError:
            logger.warning("profile_parse_error", user_id=user_id)
            return None

    def save_profile(self, profile: UserProfile) -> None:
        self._write(self._path("profiles", profile.user_id), profile.model_dump_json())

    def list_profiles(self) -> list[UserProfile]:
        profiles = []
        for path in sorted((self.root / "profiles").glob("*.json")):
            try:
                profiles.append(UserProfile.model_validate_json(path.read_text(encoding="utf-8")))
            except ValueError:
                logger.warning("profile_parse_error", path=str(path))
        return profiles

    # Lesson state

    def get_state(self, user_id: str) -> LessonState | None:
        path = self._path("states", user_id)
        try:
            data = self._read(path)
            return LessonState.model_validate(data) if data is not None else None
        except ValueError:
            logger.warning("lesson_state_parse_error", user_id=user_id)
            return None

    def set_state(self, user_id: str, state: LessonState) -> None:
        self._write(self._path("states", user_id), state.model_dump_json())

    def delete_state(self, user_id: str) -> None:
        self._path("states", user_id).unlink(missing_ok=True)

    # Daily topic cache

    def get_topic_cache(self, day: date, now: datetime | None = None) -> DailyTopicsCache | None:
        path = self._path("topics", day.isoformat())
        try:
            data = self._read(path)
            if data is None:
                return None
            cache = DailyTopicsCache.model_validate(data)
        except ValueError:
            logger.warning("topic_cache_parse_error", day=day.isoformat())
            return None
        if (now or datetime.now(timezone.utc)) >= cache.expires_at:
            return None
        return cache

    def set_topic_cache(
        self,
        day: date,
        topics: list[NewsArticle],
        ttl: timedelta = TOPIC_CACHE_TTL,
        now: datetime | None = None,
    ) -> DailyTopicsCache:
        fetched_at = now or datetime.now(timezone.utc)
        cache = DailyTopicsCache(
            day=day, topics=topics, fetched_at=fetched_at, expires_at=fetched_at + ttl
        )
        self._write(self._path("topics", day.isoformat()), cache.model_dump_json())
        return cache

    # Audio

    def save_audio(self, name: str, data: bytes) -> str:
        path = self._path("audio", name, suffix=".ogg")
        with tempfile.NamedTemporaryFile("wb", dir=path.parent, delete=False) as tmp:
            tmp.write(data)
        os.replace(tmp.name, path)
        return str(path)
