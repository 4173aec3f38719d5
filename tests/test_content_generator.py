"""Tests for the OpenAI-backed content generator and task builders."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import make_article
from openai import OpenAIError

from daily_lesson_bot.content import prompts
from daily_lesson_bot.content.generator import ContentGenerator, parse_json_response
from daily_lesson_bot.content.tasks import (
    build_listening_task,
    build_reading_task,
    build_speaking_task,
)
from daily_lesson_bot.errors import GenerationFailure


def _completion(content):
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _generator(*replies):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=[_completion(r) for r in replies])
    return ContentGenerator(client=client, language="Dutch", language_code="nl", level="A2")


QUESTION = {"question": "Wat?", "options": ["x", "y", "z"], "correct": "c"}


class TestParseJson:
    def test_plain_object(self):
        assert parse_json_response('{"a": 1}') == {"a": 1}

    def test_fenced_object(self):
        assert parse_json_response('```json\n{"a": 1}\n```') == {"a": 1}

    def test_invalid(self):
        with pytest.raises(GenerationFailure):
            parse_json_response("not json")

    def test_list_is_not_an_object(self):
        with pytest.raises(GenerationFailure):
            parse_json_response("[1, 2]")


class TestPrompts:
    def test_build_prompt_fills_language(self):
        text = prompts.build_prompt(prompts.QUESTIONS, "Dutch", "A2", count=3)
        assert "create 3 multiple choice questions" in text
        assert "{language}" not in text
        assert '"questions"' in text


class TestChat:
    async def test_adapt_article_sends_article(self):
        gen = _generator("Titel\n\nTekst")
        assert await gen.adapt_article(make_article("a")) == "Titel\n\nTekst"
        kwargs = gen.client.chat.completions.create.await_args.kwargs
        assert "Article a" in kwargs["messages"][1]["content"]
        assert "A2 Dutch" in kwargs["messages"][0]["content"]
        assert "response_format" not in kwargs

    async def test_empty_reply_is_failure(self):
        with pytest.raises(GenerationFailure):
            await _generator("").write_speaking_prompt(make_article("a"))

    async def test_api_error_is_failure(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(side_effect=OpenAIError("down"))
        gen = ContentGenerator(client=client)
        with pytest.raises(GenerationFailure):
            await gen.write_listening_text(make_article("a"))


class TestStructuredOutput:
    async def test_questions(self):
        gen = _generator(json.dumps({"questions": [QUESTION] * 4}))
        questions = await gen.generate_questions("tekst", 3)
        assert len(questions) == 3
        assert questions[0].correct == "C"
        kwargs = gen.client.chat.completions.create.await_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}

    async def test_malformed_questions_are_not_coerced(self):
        bad = dict(QUESTION, options=["only", "two"])
        with pytest.raises(GenerationFailure):
            await _generator(json.dumps({"questions": [bad]})).generate_questions("t", 1)

    async def test_no_questions(self):
        with pytest.raises(GenerationFailure):
            await _generator('{"questions": []}').generate_questions("t", 2)

    async def test_vocabulary(self):
        gen = _generator('{"words": [{"word": "lezen", "translation": "to read"}]}')
        words = await gen.extract_vocabulary("tekst")
        assert words[0].word == "lezen"

    async def test_evaluation(self):
        reply = {
            "grammar_note": "ok",
            "vocab_note": "ok",
            "polished_text": "Ik lees.",
            "summary": "Goed!",
            "score": 3,
        }
        evaluation = await _generator(json.dumps(reply)).evaluate_response("Vertel.", "Ik lees")
        assert evaluation.score == 3

    async def test_evaluation_score_out_of_range(self):
        reply = dict.fromkeys(["grammar_note", "vocab_note", "polished_text", "summary"], "")
        reply["score"] = 5
        with pytest.raises(GenerationFailure):
            await _generator(json.dumps(reply)).evaluate_response("Vertel.", "Ik lees")


class TestAudio:
    async def test_synthesize_speech(self):
        client = MagicMock()
        client.audio.speech.create = AsyncMock(return_value=SimpleNamespace(content=b"OggS"))
        gen = ContentGenerator(client=client, tts_voice="nova")
        assert await gen.synthesize_speech("Hallo") == b"OggS"
        kwargs = client.audio.speech.create.await_args.kwargs
        assert kwargs["voice"] == "nova"
        assert kwargs["response_format"] == "opus"

    async def test_transcribe_speech(self):
        client = MagicMock()
        client.audio.transcriptions.create = AsyncMock(return_value=SimpleNamespace(text=" Hallo "))
        gen = ContentGenerator(client=client, language_code="nl")
        assert await gen.transcribe_speech(b"OggS") == "Hallo"
        kwargs = client.audio.transcriptions.create.await_args.kwargs
        assert kwargs["language"] == "nl"
        assert kwargs["file"] == ("voice.ogg", b"OggS")

    async def test_transcription_error(self):
        client = MagicMock()
        client.audio.transcriptions.create = AsyncMock(side_effect=OpenAIError("down"))
        with pytest.raises(GenerationFailure):
            await ContentGenerator(client=client).transcribe_speech(b"x")


class TestTaskBuilders:
    async def test_reading_task(self, generator):
        task = await build_reading_task(generator, make_article("a", "software"))
        assert task.article_title == "Article a"
        assert task.article_url == "https://news.example/a"
        assert len(task.questions) == 3
        generator.generate_questions.assert_awaited_once_with(task.content, 3)

    async def test_listening_task_saves_audio(self, generator):
        saved = []

        def save(audio):
            saved.append(audio)
            return "/data/audio/clip.ogg"

        task = await build_listening_task(generator, make_article("a"), save)
        assert saved == [b"OggS-fake-audio"]
        assert task.audio_path == "/data/audio/clip.ogg"
        assert task.transcript == "Luister naar deze tekst."
        assert len(task.questions) == 2

    async def test_speaking_task(self, generator):
        task = await build_speaking_task(generator, make_article("a"))
        assert task.prompt == "Vertel over je werkdag."
        assert len(task.words) == 2

    async def test_listening_audio_save_error_is_generation_failure(self, generator):
        def save(audio):
            raise OSError("disk full")

        with pytest.raises(GenerationFailure) as exc_info:
            await build_listening_task(generator, make_article("a"), save)
        assert exc_info.value.stage == 2
