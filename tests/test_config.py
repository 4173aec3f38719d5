"""Tests for settings loading and the topic catalogue."""

import pytest

from daily_lesson_bot import config
from daily_lesson_bot.config import Settings, YamlSettingsSource, load_topics


@pytest.fixture
def env(monkeypatch):
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "token")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")


class TestYamlSource:
    def test_flattens_sections(self, tmp_path, monkeypatch):
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "settings.yaml").write_text(
            "lesson:\n  level: B1\n  topics_per_lesson: 4\nbroadcast:\n  delay_seconds: 0.1\n"
        )
        monkeypatch.setattr(config, "_find_project_root", lambda: tmp_path)
        values = YamlSettingsSource(Settings)()
        assert values == {
            "language_level": "B1",
            "topics_per_lesson": 4,
            "broadcast_delay_seconds": 0.1,
        }

    def test_missing_file(self, tmp_path, monkeypatch):
        monkeypatch.setattr(config, "_find_project_root", lambda: tmp_path)
        assert YamlSettingsSource(Settings)() == {}


class TestSettings:
    def test_defaults_from_project_yaml(self, env):
        settings = Settings()
        assert settings.target_language == "Dutch"
        assert settings.language_code == "nl"
        assert settings.reading_questions == 3
        assert settings.listening_questions == 2
        assert settings.cron_secret is None

    def test_env_overrides_yaml(self, env, monkeypatch):
        monkeypatch.setenv("LANGUAGE_LEVEL", "B2")
        assert Settings().language_level == "B2"

    def test_data_dir_is_created(self, env, tmp_path):
        settings = Settings(project_root=tmp_path)
        assert settings.data_dir == tmp_path / "data"
        assert settings.data_dir.is_dir()


class TestTopics:
    def test_catalogue(self):
        topics = load_topics()
        assert [t.id for t in topics] == ["manchester-united", "software", "startups", "russia"]

    def test_missing_catalogue(self, tmp_path, monkeypatch):
        monkeypatch.setattr(config, "_find_project_root", lambda: tmp_path)
        with pytest.raises(FileNotFoundError):
            load_topics()
