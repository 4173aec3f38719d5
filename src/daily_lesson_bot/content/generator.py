"""LLM-backed content generation: texts, questions, vocabulary, speech."""

import json
import re

import structlog
from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, ValidationError

from daily_lesson_bot.content import prompts
from daily_lesson_bot.errors import GenerationFailure
from daily_lesson_bot.models.lesson import (
    NewsArticle,
    SpeakingEvaluation,
    TaskQuestion,
    VocabularyWord,
)

logger = structlog.get_logger()

_FENCE = re.compile(r"```(?:json)?\s*\n(.*?)\n\s*```", re.DOTALL)


class _QuestionSet(BaseModel):
    questions: list[TaskQuestion]


class _WordList(BaseModel):
    words: list[VocabularyWord]


def parse_json_response(text: str) -> dict:
    """Parse a JSON object from an LLM reply, tolerating a markdown fence.

    Raises:
        GenerationFailure: If the reply is not a JSON object.
    """
    match = _FENCE.search(text)
    if match:
        text = match.group(1)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise GenerationFailure(f"Invalid JSON from model: {e}") from e
    if not isinstance(data, dict):
        raise GenerationFailure("Expected a JSON object from model")
    return data


class ContentGenerator:
    """Stateless wrapper around the OpenAI chat, speech and transcription APIs.

    Every method either returns well-formed content or raises
    GenerationFailure; malformed model output is never coerced.

    Args:
        api_key: OpenAI API key.
        model: Chat model for text and JSON generation.
        tts_model: Text-to-speech model.
        tts_voice: Voice for synthesized audio.
        stt_model: Speech-to-text model.
        language: Target language name, e.g. "Dutch".
        language_code: ISO code passed to transcription, e.g. "nl".
        level: CEFR level the content is adapted to.
        client: Preconfigured client (tests inject a mock here).
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        tts_model: str = "tts-1",
        tts_voice: str = "alloy",
        stt_model: str = "whisper-1",
        language: str = "Dutch",
        language_code: str = "nl",
        level: str = "A2",
        client: AsyncOpenAI | None = None,
    ):
        self.client = client or AsyncOpenAI(api_key=api_key)
        self.model = model
        self.tts_model = tts_model
        self.tts_voice = tts_voice
        self.stt_model = stt_model
        self.language = language
        self.language_code = language_code
        self.level = level

    def _prompt(self, template: str, **kwargs) -> str:
        return prompts.build_prompt(template, self.language, self.level, **kwargs)

    async def _chat(
        self,
        system_prompt: str,
        user_message: str,
        json_mode: bool = False,
        temperature: float = 0.7,
    ) -> str:
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_message},
                ],
                temperature=temperature,
                **kwargs,
            )
        except OpenAIError as e:
            logger.exception("chat_completion_failed", model=self.model)
            raise GenerationFailure(f"Chat completion failed: {e}") from e

        content = (response.choices[0].message.content or "").strip() if response.choices else ""
        if not content:
            raise GenerationFailure("Model returned an empty reply")
        return content

    async def adapt_article(self, article: NewsArticle) -> str:
        """Rewrite a news article as a short text at the target level."""
        return await self._chat(self._prompt(prompts.ADAPT_ARTICLE), article.as_prompt)

    async def write_listening_text(self, article: NewsArticle) -> str:
        return await self._chat(self._prompt(prompts.LISTENING_TEXT), article.as_prompt)

    async def write_speaking_prompt(self, article: NewsArticle) -> str:
        return await self._chat(self._prompt(prompts.SPEAKING_PROMPT), article.as_prompt)

    async def generate_questions(self, text: str, count: int) -> list[TaskQuestion]:
        """Create ``count`` multiple choice questions about ``text``.

        The model may return more than asked for; extras are dropped.
        """
        reply = await self._chat(
            self._prompt(prompts.QUESTIONS, count=count), text, json_mode=True
        )
        try:
            questions = _QuestionSet.model_validate(parse_json_response(reply)).questions
        except ValidationError as e:
            raise GenerationFailure(f"Malformed questions: {e}") from e
        if not questions:
            raise GenerationFailure("Model returned no questions")
        return questions[:count]

    async def extract_vocabulary(self, text: str) -> list[VocabularyWord]:
        reply = await self._chat(
            self._prompt(prompts.VOCABULARY), text, json_mode=True, temperature=0.3
        )
        try:
            return _WordList.model_validate(parse_json_response(reply)).words
        except ValidationError as e:
            raise GenerationFailure(f"Malformed vocabulary: {e}") from e

    async def synthesize_speech(self, text: str) -> bytes:
        """Text to speech as OGG/Opus, the format chat voice notes use."""
        try:
            response = await self.client.audio.speech.create(
                model=self.tts_model,
                voice=self.tts_voice,
                input=text,
                response_format="opus",
            )
        except OpenAIError as e:
            logger.exception("speech_synthesis_failed", model=self.tts_model)
            raise GenerationFailure(f"Speech synthesis failed: {e}") from e
        audio = response.content
        if not audio:
            raise GenerationFailure("Speech synthesis returned no audio")
        return audio

    async def transcribe_speech(self, audio: bytes, filename: str = "voice.ogg") -> str:
        """Speech to text. An empty string means nothing usable was heard."""
        try:
            response = await self.client.audio.transcriptions.create(
                model=self.stt_model,
                file=(filename, audio),
                language=self.language_code,
            )
        except OpenAIError as e:
            logger.exception("transcription_failed", model=self.stt_model)
            raise GenerationFailure(f"Transcription failed: {e}") from e
        return (response.text or "").strip()

    async def evaluate_response(self, prompt: str, transcript: str) -> SpeakingEvaluation:
        reply = await self._chat(
            self._prompt(prompts.EVALUATE_SPEAKING),
            f"Prompt: {prompt}\n\nUser's response: {transcript}",
            json_mode=True,
            temperature=0.3,
        )
        try:
            evaluation = SpeakingEvaluation.model_validate(parse_json_response(reply))
        except ValidationError as e:
            raise GenerationFailure(f"Malformed evaluation: {e}") from e
        logger.info("speaking_evaluated", score=evaluation.score)
        return evaluation
