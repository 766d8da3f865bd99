"""Tests for the ElevenLabs speech-to-text adapter."""
import asyncio

import httpx
import pytest

from errors import TranscriptionError
from transcription import ElevenLabsTranscriber

AUDIO = b"ID3\x00fake mp3 payload"
STT_URL = "https://stt.test/v1/speech-to-text"


def _transcriber(handler, api_key="test-key"):
    return ElevenLabsTranscriber(api_key=api_key, url=STT_URL, model="scribe_v1",
                                 transport=httpx.MockTransport(handler))


def test_transcribe_success():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={
            "text": "我爱学习。",
            "words": [{"text": "我", "start": 0.0, "end": 0.2}],
            "language_code": "zho",
            "language_probability": 0.97,
        })

    result = asyncio.run(_transcriber(handler).transcribe(AUDIO, "lesson.mp3"))
    assert result == {
        "transcript": {"text": "我爱学习。", "words": [{"text": "我", "start": 0.0, "end": 0.2}]},
        "language_code": "zho",
        "language_probability": 0.97,
    }

    request = seen[0]
    assert str(request.url) == STT_URL
    assert request.headers["xi-api-key"] == "test-key"
    assert b'name="model_id"' in request.content
    assert b"scribe_v1" in request.content
    assert b'filename="lesson.mp3"' in request.content
    assert AUDIO in request.content


def test_missing_key_is_not_configured():
    def handler(request):
        raise AssertionError("no request expected without a key")

    with pytest.raises(TranscriptionError) as excinfo:
        asyncio.run(_transcriber(handler, api_key="").transcribe(AUDIO))
    assert excinfo.value.configured is False


@pytest.mark.parametrize("response", [
    httpx.Response(401, json={"detail": "invalid api key"}),
    httpx.Response(500, text="internal error"),
    httpx.Response(200, text="not json"),
    httpx.Response(200, json={"language_code": "zho"}),
    httpx.Response(200, json={"text": None}),
    httpx.Response(200, json=["我爱学习。"]),
])
def test_bad_upstream_reply_raises(response):
    with pytest.raises(TranscriptionError) as excinfo:
        asyncio.run(_transcriber(lambda request: response).transcribe(AUDIO))
    assert excinfo.value.configured is True


def test_transport_error_raises():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(TranscriptionError) as excinfo:
        asyncio.run(_transcriber(handler).transcribe(AUDIO))
    assert excinfo.value.configured is True
    assert isinstance(excinfo.value.__cause__, httpx.ReadTimeout)


def test_missing_words_default_to_empty_list():
    handler = lambda request: httpx.Response(200, json={"text": "你好"})
    result = asyncio.run(_transcriber(handler).transcribe(AUDIO))
    assert result["transcript"] == {"text": "你好", "words": []}
    assert result["language_code"] is None
