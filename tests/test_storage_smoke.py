"""Smoke tests for the file store."""

from datetime import date, timedelta

import pytest
from conftest import NOW, make_article

from daily_lesson_bot.models.lesson import LessonState, Stage
from daily_lesson_bot.models.user_profile import UserProfile
from daily_lesson_bot.storage.file_store import FileStore

DAY = date(2026, 3, 2)


class TestProfiles:
    def test_missing_profile(self, store):
        assert store.get_profile("1") is None

    def test_save_and_get(self, store):
        store.save_profile(UserProfile(user_id="1", display_name="Anna", topics=["software"]))
        profile = store.get_profile("1")
        assert profile.display_name == "Anna"
        assert profile.topics == ["software"]

    def test_list_profiles_skips_corrupt_files(self, store):
        store.save_profile(UserProfile(user_id="1"))
        store.save_profile(UserProfile(user_id="2"))
        (store.root / "profiles" / "3.json").write_text("{not json")
        assert [p.user_id for p in store.list_profiles()] == ["1", "2"]

    def test_truncated_profile_reads_as_absent(self, store):
        (store.root / "profiles" / "1.json").write_text("{truncated")
        assert store.get_profile("1") is None


class TestLessonState:
    def test_round_trip(self, store):
        state = LessonState(day=DAY, stage=Stage.TASK_1, selected_topic=make_article("a"))
        store.set_state("1", state)
        assert store.get_state("1") == state

    def test_overwrite_replaces_whole_record(self, store):
        store.set_state("1", LessonState(day=DAY, stage=Stage.TASK_2))
        store.set_state("1", LessonState(day=DAY))
        assert store.get_state("1").stage is Stage.SELECTING_TOPIC

    def test_delete(self, store):
        store.set_state("1", LessonState(day=DAY))
        store.delete_state("1")
        store.delete_state("1")
        assert store.get_state("1") is None

    def test_schema_mismatch_reads_as_absent(self, store):
        (store.root / "states" / "1.json").write_text('{"day": "2026-03-02", "stage": "lost"}')
        assert store.get_state("1") is None

    def test_truncated_file_reads_as_absent(self, store):
        (store.root / "states" / "1.json").write_text("{truncated")
        assert store.get_state("1") is None

    def test_no_temp_files_left(self, store):
        store.set_state("1", LessonState(day=DAY))
        assert [p.name for p in (store.root / "states").iterdir()] == ["1.json"]

    @pytest.mark.parametrize("key", ["../etc", "a/b", "", ".."])
    def test_rejects_unsafe_keys(self, store, key):
        with pytest.raises(ValueError):
            store.get_state(key)


class TestTopicCache:
    def test_missing(self, store):
        assert store.get_topic_cache(DAY, now=NOW) is None

    def test_fresh_cache(self, store):
        store.set_topic_cache(DAY, [make_article("a")], now=NOW)
        cache = store.get_topic_cache(DAY, now=NOW + timedelta(hours=3))
        assert [a.title for a in cache.topics] == ["Article a"]
        assert cache.expires_at == NOW + timedelta(days=1)

    def test_expired_cache(self, store):
        store.set_topic_cache(DAY, [make_article("a")], ttl=timedelta(hours=1), now=NOW)
        assert store.get_topic_cache(DAY, now=NOW + timedelta(hours=2)) is None

    def test_truncated_cache_reads_as_absent(self, store):
        (store.root / "topics" / f"{DAY.isoformat()}.json").write_text("{truncated")
        assert store.get_topic_cache(DAY, now=NOW) is None


class TestAudio:
    def test_save_audio(self, store):
        path = store.save_audio("42-2026-03-02", b"OggS")
        assert path.endswith("audio/42-2026-03-02.ogg")
        with open(path, "rb") as f:
            assert f.read() == b"OggS"


def test_creates_layout(tmp_path):
    FileStore(tmp_path / "nested" / "data")
    for name in ("profiles", "states", "topics", "audio"):
        assert (tmp_path / "nested" / "data" / name).is_dir()
