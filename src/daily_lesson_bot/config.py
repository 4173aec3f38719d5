"""Application configuration using pydantic-settings."""

import functools
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


def _find_project_root() -> Path:
    """Find project root by locating pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return Path(__file__).resolve().parent.parent.parent


# (yaml section, yaml key) -> Settings field
_YAML_FIELDS: dict[tuple[str, str], str] = {
    ("server", "host"): "host",
    ("server", "port"): "port",
    ("openai", "model"): "openai_model",
    ("openai", "tts_model"): "tts_model",
    ("openai", "tts_voice"): "tts_voice",
    ("openai", "stt_model"): "stt_model",
    ("lesson", "target_language"): "target_language",
    ("lesson", "language_code"): "language_code",
    ("lesson", "level"): "language_level",
    ("lesson", "topics_per_lesson"): "topics_per_lesson",
    ("lesson", "reading_questions"): "reading_questions",
    ("lesson", "listening_questions"): "listening_questions",
    ("news", "lang"): "news_lang",
    ("news", "results_per_topic"): "news_results_per_topic",
    ("telegram", "webhook_url"): "webhook_url",
    ("broadcast", "delay_seconds"): "broadcast_delay_seconds",
}


class YamlSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads from settings.yaml."""

    def get_field_value(self, field_name: str) -> tuple[Any, str, bool]:
        """Not used - we implement __call__ instead."""
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        """Load settings from YAML file."""
        yaml_path = _find_project_root() / "config" / "settings.yaml"
        if not yaml_path.exists():
            return {}

        with open(yaml_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        # Flatten nested structure to match Settings field names
        flattened = {}
        for (section, key), field_name in _YAML_FIELDS.items():
            value = (data.get(section) or {}).get(key)
            if value is not None:
                flattened[field_name] = value
        return flattened


class Settings(BaseSettings):
    """Application settings loaded from environment and config files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Telegram
    telegram_bot_token: str = Field(description="Telegram bot token")
    webhook_url: str | None = Field(default=None)
    webhook_secret: str | None = Field(default=None)

    # Cron authentication (None disables the daily push endpoint)
    cron_secret: str | None = Field(default=None)

    # OpenAI
    openai_api_key: str = Field(description="OpenAI API key")
    openai_model: str = Field(default="gpt-4o-mini")
    tts_model: str = Field(default="tts-1")
    tts_voice: str = Field(default="alloy")
    stt_model: str = Field(default="whisper-1")

    # News
    gnews_api_key: str | None = Field(default=None)
    news_lang: str = Field(default="en")
    news_results_per_topic: int = Field(default=10)

    # Lesson
    target_language: str = Field(default="Dutch")
    language_code: str = Field(default="nl")
    language_level: str = Field(default="A2")
    topics_per_lesson: int = Field(default=5)
    reading_questions: int = Field(default=3)
    listening_questions: int = Field(default=2)

    # Broadcast: ~28 msg/sec, under Telegram's 30/sec limit
    broadcast_delay_seconds: float = Field(default=0.035)

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Paths
    project_root: Path = Field(default_factory=_find_project_root)

    @property
    def data_dir(self) -> Path:
        d = self.project_root / "data"
        d.mkdir(parents=True, exist_ok=True)
        return d

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings sources to include YAML file.

        Priority order (highest to lowest):
        1. init_settings (arguments passed to Settings())
        2. env_settings (environment variables)
        3. dotenv_settings (.env file)
        4. YamlSettingsSource (settings.yaml)
        5. file_secret_settings
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlSettingsSource(settings_cls),
            file_secret_settings,
        )


@functools.lru_cache
def get_settings() -> Settings:
    """Get application settings singleton."""
    return Settings()


class Topic(BaseModel):
    """A news query the daily topic set is drawn from."""

    id: str
    query: str
    label: str


def load_topics() -> list[Topic]:
    """Load the topic catalogue from config/topics.yaml."""
    topics_path = _find_project_root() / "config" / "topics.yaml"
    if not topics_path.exists():
        raise FileNotFoundError(f"Topics file not found: {topics_path}")
    with open(topics_path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return [Topic(**item) for item in data.get("topics", [])]
