from types import SimpleNamespace

import httpx
import openai
import pytest
from tenacity import wait_none

from chunkscribe.exceptions import TranscriptionError
from chunkscribe.transcriber import OpenAITranscriber, content_type_for, is_transient_error

URL = "https://api.openai.com/v1/audio/transcriptions"


def _request():
    return httpx.Request("POST", URL)


def _status_error(cls, status, body=None):
    return cls(f"status {status}", response=httpx.Response(status, request=_request()), body=body)


def _payload(**overrides):
    payload = {
        "task": "transcribe",
        "language": "english",
        "duration": 4.5,
        "text": " Hello there. General Kenobi.",
        "segments": [
            {"id": 0, "seek": 0, "start": 0.0, "end": 2.0, "text": " Hello there.", "avg_logprob": -0.2},
            {"id": 1, "seek": 0, "start": 2.0, "end": 4.5, "text": " General Kenobi."},
        ],
    }
    payload.update(overrides)
    return payload


class FakeTranscriptions:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def create(self, **kwargs):
        name, handle, content_type = kwargs["file"]
        self.calls.append(dict(kwargs, name=name, body=handle.read(), content_type=content_type))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _transcriber(responses, **kwargs):
    fake = FakeTranscriptions(responses)
    client = SimpleNamespace(audio=SimpleNamespace(transcriptions=fake))
    kwargs.setdefault("max_retries", 3)
    return OpenAITranscriber(client=client, retry_wait=wait_none(), **kwargs), fake


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "chunk_0000.mp3"
    path.write_bytes(b"ID3 fake mp3 data")
    return str(path)


def test_parses_verbose_json(audio_file):
    transcriber, fake = _transcriber([_payload()])
    result = transcriber.transcribe(audio_file)

    assert result.language == "english"
    assert result.duration == 4.5
    assert [(s.start_ms, s.end_ms, s.text) for s in result.segments] == [
        (0, 2000, " Hello there."),
        (2000, 4500, " General Kenobi."),
    ]
    call = fake.calls[0]
    assert call["model"] == "whisper-1"
    assert call["response_format"] == "verbose_json"
    assert call["timestamp_granularities"] == ["segment"]
    assert call["name"] == "chunk_0000.mp3"
    assert call["content_type"] == "audio/mpeg"
    assert call["body"] == b"ID3 fake mp3 data"


def test_accepts_sdk_objects_with_model_dump(audio_file):
    response = SimpleNamespace(model_dump=lambda: _payload(language="fr"))
    transcriber, _ = _transcriber([response])
    assert transcriber.transcribe(audio_file).language == "fr"


def test_top_level_words_are_attached_to_segments(audio_file):
    words = [
        {"word": "Hello", "start": 0.0, "end": 0.5},
        {"word": "there", "start": 0.6, "end": 1.9},
        {"word": "General", "start": 2.0, "end": 3.0},
        {"word": "Kenobi", "start": 3.1, "end": 4.5},
    ]
    transcriber, fake = _transcriber([_payload(words=words)], word_timestamps=True)
    result = transcriber.transcribe(audio_file)

    assert fake.calls[0]["timestamp_granularities"] == ["segment", "word"]
    assert [w.text for w in result.segments[0].words] == ["Hello", "there"]
    assert [(w.text, w.start_ms) for w in result.segments[1].words] == [("General", 2000), ("Kenobi", 3100)]


@pytest.mark.parametrize("bad", [
    {"segments": [{"start": 3.0, "end": 1.0, "text": "backwards"}]},
    {"segments": [{"start": -1.0, "end": 1.0, "text": "negative"}]},
    {"segments": [{"start": 0.0, "text": "no end"}]},
    {"text": None},
    {"duration": "long"},
])
def test_malformed_response_rejected(audio_file, bad):
    transcriber, _ = _transcriber([_payload(**bad)])
    with pytest.raises(TranscriptionError, match="Malformed"):
        transcriber.transcribe(audio_file)


def test_plain_text_response_rejected(audio_file):
    transcriber, _ = _transcriber(["just text"])
    with pytest.raises(TranscriptionError, match="Unexpected response type"):
        transcriber.transcribe(audio_file)


def test_transient_failures_are_retried(audio_file):
    transcriber, fake = _transcriber([
        openai.APIConnectionError(request=_request()),
        _status_error(openai.InternalServerError, 503),
        openai.APITimeoutError(request=_request()),
        _payload(),
    ])
    result = transcriber.transcribe(audio_file)
    assert len(fake.calls) == 4
    assert len(result.segments) == 2
    # each attempt re-reads the whole file
    assert all(c["body"] == b"ID3 fake mp3 data" for c in fake.calls)


def test_retries_are_bounded(audio_file):
    errors = [openai.APIConnectionError(request=_request()) for _ in range(5)]
    transcriber, fake = _transcriber(errors, max_retries=2)
    with pytest.raises(TranscriptionError):
        transcriber.transcribe(audio_file)
    assert len(fake.calls) == 3


def test_client_errors_are_not_retried(audio_file):
    transcriber, fake = _transcriber([_status_error(openai.BadRequestError, 400), _payload()])
    with pytest.raises(TranscriptionError):
        transcriber.transcribe(audio_file)
    assert len(fake.calls) == 1


def test_transient_classification():
    assert is_transient_error(openai.APIConnectionError(request=_request()))
    assert is_transient_error(openai.APITimeoutError(request=_request()))
    assert is_transient_error(_status_error(openai.RateLimitError, 429))
    assert is_transient_error(_status_error(openai.InternalServerError, 500))
    assert not is_transient_error(_status_error(openai.RateLimitError, 429, body={"code": "insufficient_quota"}))
    assert not is_transient_error(_status_error(openai.AuthenticationError, 401))
    assert not is_transient_error(ValueError("nope"))


def test_missing_file(tmp_path):
    transcriber, fake = _transcriber([_payload()])
    with pytest.raises(TranscriptionError, match="not found"):
        transcriber.transcribe(str(tmp_path / "gone.mp3"))
    assert fake.calls == []


@pytest.mark.parametrize("name, expected", [
    ("a.mp3", "audio/mpeg"),
    ("a.M4A", "audio/mp4"),
    ("a.wav", "audio/wav"),
    ("a.opus", "audio/ogg"),
    ("a.webm", "audio/webm"),
    ("a.flac", "audio/flac"),
])
def test_content_type_follows_container(name, expected):
    assert content_type_for(name) == expected


def test_unknown_container_rejected():
    with pytest.raises(TranscriptionError):
        content_type_for("a.xyz")
