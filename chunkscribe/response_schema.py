"""Validated shape of a ``verbose_json`` transcription response."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .models import TranscriptSegment, TranscriptionResult, Word
from .utils import seconds_to_ms


class WordPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    word: str
    start: float = Field(ge=0)
    end: float = Field(ge=0)

    @model_validator(mode="after")
    def _ordered(self) -> "WordPayload":
        if self.end < self.start:
            raise ValueError(f"word ends before it starts ({self.start} > {self.end})")
        return self

    def to_word(self) -> Word:
        return Word(text=self.word, start_ms=seconds_to_ms(self.start), end_ms=seconds_to_ms(self.end))


class SegmentPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    start: float = Field(ge=0)
    end: float = Field(ge=0)
    text: str
    words: Optional[list[WordPayload]] = None

    @model_validator(mode="after")
    def _ordered(self) -> "SegmentPayload":
        if self.end < self.start:
            raise ValueError(f"segment ends before it starts ({self.start} > {self.end})")
        return self


class TranscriptionPayload(BaseModel):
    """The fields the pipeline relies on; anything else in the response is ignored."""

    model_config = ConfigDict(extra="ignore")

    text: str
    language: Optional[str] = None
    duration: float = Field(default=0.0, ge=0)
    segments: list[SegmentPayload] = Field(default_factory=list)
    words: Optional[list[WordPayload]] = None

    def to_result(self) -> TranscriptionResult:
        """
        Converts to the internal model. Top-level words (the shape returned for
        word granularity) are attached to the segment containing their start.
        """
        loose_words = sorted(self.words or [], key=lambda w: w.start)
        segments = []
        for i, seg in enumerate(self.segments):
            if seg.words is not None:
                words = [w.to_word() for w in seg.words]
            else:
                last = i == len(self.segments) - 1
                words = [
                    w.to_word() for w in loose_words
                    if seg.start <= w.start and (w.start < seg.end or (last and w.start <= seg.end))
                ]
            segments.append(TranscriptSegment(
                start_ms=seconds_to_ms(seg.start),
                end_ms=seconds_to_ms(seg.end),
                text=seg.text,
                words=tuple(words),
            ))
        return TranscriptionResult(
            text=self.text,
            language=self.language,
            duration=self.duration,
            segments=segments,
        )
