from dataclasses import replace
from types import SimpleNamespace

import pytest

from call_transcriber.errors import TranscriptionError
from call_transcriber.transcription import TranscriptionOptions, TranscriptionService
from call_transcriber.transcription.providers import MockTranscriptionProvider, OpenAIWhisperProvider


def test_from_settings_mock(transcription_settings, openai_settings):
    service = TranscriptionService.from_settings(transcription_settings, openai_settings)
    assert isinstance(service.provider, MockTranscriptionProvider)


def test_from_settings_openai(transcription_settings, openai_settings):
    service = TranscriptionService.from_settings(replace(transcription_settings, provider="openai"), openai_settings)
    assert isinstance(service.provider, OpenAIWhisperProvider)


def test_from_settings_unknown(transcription_settings):
    with pytest.raises(RuntimeError, match="unsupported transcription provider"):
        TranscriptionService.from_settings(replace(transcription_settings, provider="vosk"))


@pytest.mark.asyncio
async def test_blank_transcript_is_an_error(tmp_path):
    service = TranscriptionService(provider=MockTranscriptionProvider(text="   "))
    with pytest.raises(TranscriptionError, match="empty text"):
        await service.transcribe(tmp_path / "a.mp3")


@pytest.mark.asyncio
async def test_transcript_is_trimmed(tmp_path):
    provider = MockTranscriptionProvider(text="  hello world \n")
    service = TranscriptionService(provider=provider)

    result = await service.transcribe(tmp_path / "a.mp3", options=TranscriptionOptions(language="en"))

    assert result.text == "hello world"
    assert result.provider == "mock"
    assert provider.calls[0][1].language == "en"


class FakeAudio:
    def __init__(self) -> None:
        self.calls = []

        async def create(**kwargs):
            self.calls.append(("transcriptions", kwargs))
            return SimpleNamespace(text="namaste")

        async def translate(**kwargs):
            self.calls.append(("translations", kwargs))
            return SimpleNamespace(text="hello")

        self.transcriptions = SimpleNamespace(create=create)
        self.translations = SimpleNamespace(create=translate)


@pytest.mark.asyncio
async def test_openai_provider_transcribes_with_language(tmp_path, openai_settings, transcription_settings):
    audio = FakeAudio()
    provider = OpenAIWhisperProvider(
        openai_settings,
        transcription_settings,
        client=SimpleNamespace(audio=audio),
    )

    result = await provider.transcribe(path=tmp_path / "a.mp3", options=TranscriptionOptions(language="hi"))

    endpoint, params = audio.calls[0]
    assert endpoint == "transcriptions"
    assert params["model"] == "whisper-1"
    assert params["language"] == "hi"
    assert result.text == "namaste"


@pytest.mark.asyncio
async def test_openai_provider_translates(tmp_path, openai_settings, transcription_settings):
    audio = FakeAudio()
    provider = OpenAIWhisperProvider(openai_settings, transcription_settings, client=SimpleNamespace(audio=audio))

    result = await provider.transcribe(
        path=tmp_path / "a.mp3",
        options=TranscriptionOptions(language="hi", translate=True),
    )

    endpoint, params = audio.calls[0]
    assert endpoint == "translations"
    assert "language" not in params
    assert result.translated is True
    assert result.text == "hello"


@pytest.mark.asyncio
async def test_openai_provider_requires_key(tmp_path, openai_settings, transcription_settings):
    provider = OpenAIWhisperProvider(replace(openai_settings, api_key=None), transcription_settings)
    with pytest.raises(TranscriptionError, match="OPENAI_API_KEY"):
        await provider.transcribe(path=tmp_path / "a.mp3", options=TranscriptionOptions())
