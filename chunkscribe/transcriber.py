"""Handles Speech-to-Text transcription using the OpenAI audio API."""

import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Optional

import openai
from openai import OpenAI
from pydantic import ValidationError
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_random_exponential,
)

from .models import TranscriptionResult
from .exceptions import TranscriptionError
from .response_schema import TranscriptionPayload

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    '.mp3': 'audio/mpeg',
    '.m4a': 'audio/mp4',
    '.wav': 'audio/wav',
    '.ogg': 'audio/ogg',
    '.opus': 'audio/ogg',
    '.webm': 'audio/webm',
    '.flac': 'audio/flac',
    '.mp4': 'video/mp4',
}

def content_type_for(audio_path: str) -> str:
    """MIME type matching the file's container, by extension."""
    ext = os.path.splitext(audio_path)[1].lower()
    try:
        return CONTENT_TYPES[ext]
    except KeyError:
        raise TranscriptionError(f"No upload content type known for '{ext}' files: {audio_path}") from None

def is_transient_error(exc: BaseException) -> bool:
    """Connection problems, timeouts, rate limits and 5xx are worth retrying."""
    if isinstance(exc, openai.APIConnectionError): # includes APITimeoutError
        return True
    if isinstance(exc, openai.APIStatusError):
        if exc.status_code == 429:
            return getattr(exc, 'code', None) != 'insufficient_quota'
        return exc.status_code >= 500
    return False

class Transcriber(ABC):
    """Abstract base class for transcription services."""

    @abstractmethod
    def transcribe(self, audio_path: str) -> TranscriptionResult:
        """
        Transcribes the given audio file.

        Args:
            audio_path: Path to the audio file.

        Returns:
            A TranscriptionResult whose timestamps are local to the file, starting at zero.

        Raises:
            TranscriptionError: If transcription fails.
        """
        pass

class OpenAITranscriber(Transcriber):
    """Uploads audio to the OpenAI transcription endpoint, one request per file."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "whisper-1",
        word_timestamps: bool = False,
        request_timeout: float = 600,
        max_retries: int = 3,
        retry_max_wait: float = 30,
        client: Any = None,
        retry_wait: Any = None,
    ):
        """
        Initializes the OpenAITranscriber.

        Args:
            api_key: OpenAI API key. Ignored when ``client`` is given.
            model: Transcription model name.
            word_timestamps: Also request word-level timestamps.
            request_timeout: Per-request timeout in seconds.
            max_retries: Retries after the first attempt, transient failures only.
            retry_max_wait: Upper bound of the jittered exponential backoff, seconds.
            client: Pre-built client exposing ``audio.transcriptions.create``.
            retry_wait: tenacity wait strategy overriding the default backoff.
        """
        self.model = model
        self.word_timestamps = word_timestamps
        self.max_retries = max_retries
        # Retries are handled here so the attempt bound is exact
        self.client = client or OpenAI(api_key=api_key, timeout=request_timeout, max_retries=0)
        self.retry_wait = retry_wait or wait_random_exponential(multiplier=1, max=retry_max_wait)
        logger.info(f"Initializing OpenAITranscriber with model '{self.model}' (retries: {self.max_retries})")

    def transcribe(self, audio_path: str) -> TranscriptionResult:
        """
        Transcribes one audio file.

        Raises:
            TranscriptionError: If the file is missing, the service fails after
                                retries, or the response is malformed.
        """
        logger.info(f"Starting transcription for: {audio_path}")
        if not os.path.exists(audio_path):
            raise TranscriptionError(f"Audio file not found: {audio_path}")
        content_type = content_type_for(audio_path)

        retryer = Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=self.retry_wait,
            retry=retry_if_exception(is_transient_error),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            response = retryer(self._request, audio_path, content_type)
        except openai.OpenAIError as e:
            logger.error(f"Transcription request failed for {audio_path}: {e}")
            raise TranscriptionError(f"Transcription failed for {audio_path}: {e}") from e
        except OSError as e:
            raise TranscriptionError(f"Could not read {audio_path} for upload: {e}") from e

        result = self._parse(response, audio_path)
        logger.info(
            f"Transcription completed for {os.path.basename(audio_path)}: "
            f"{len(result.segments)} segments, language: {result.language or 'N/A'}"
        )
        return result

    def _request(self, audio_path: str, content_type: str) -> Any:
        granularities = ["segment", "word"] if self.word_timestamps else ["segment"]
        with open(audio_path, 'rb') as f:
            return self.client.audio.transcriptions.create(
                model=self.model,
                file=(os.path.basename(audio_path), f, content_type),
                response_format="verbose_json",
                timestamp_granularities=granularities,
            )

    def _parse(self, response: Any, audio_path: str) -> TranscriptionResult:
        if hasattr(response, 'model_dump'):
            payload = response.model_dump()
        elif isinstance(response, dict):
            payload = response
        else:
            raise TranscriptionError(
                f"Unexpected response type {type(response).__name__} for {audio_path}; expected verbose JSON."
            )
        try:
            return TranscriptionPayload.model_validate(payload).to_result()
        except ValidationError as e:
            logger.error(f"Malformed transcription response for {audio_path}: {e}")
            raise TranscriptionError(f"Malformed transcription response for {audio_path}: {e}") from e
