"""Data models for chunkscribe.

Segment and word timestamps are integer milliseconds; the ``start``/``end``
properties give seconds for display and arithmetic at the edges.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class MediaAsset:
    """A file on disk with its size and (once probed) duration in seconds."""
    path: str
    size_bytes: int
    duration: Optional[float] = None
    temporary: bool = True # False for the user's own input; never deleted

@dataclass(frozen=True)
class OptimizationResult:
    asset: MediaAsset
    speed_factor: float = 1.0

@dataclass(frozen=True)
class ChunkPlan:
    should_chunk: bool
    chunk_seconds: float # original time
    chunk_seconds_optimized: float
    reason: str = "none"

@dataclass(frozen=True)
class ChunkAsset:
    asset: MediaAsset
    index: int
    duration: float # probed, optimized time

@dataclass(frozen=True)
class Word:
    text: str
    start_ms: int
    end_ms: int

@dataclass(frozen=True)
class TranscriptSegment:
    """Represents a single timed piece of text."""
    start_ms: int
    end_ms: int
    text: str
    words: Tuple[Word, ...] = ()

    @property
    def start(self) -> float:
        return self.start_ms / 1000.0

    @property
    def end(self) -> float:
        return self.end_ms / 1000.0

@dataclass
class TranscriptionResult:
    """Holds the validated output of one transcription request."""
    text: str
    language: Optional[str]
    duration: float
    segments: List[TranscriptSegment] = field(default_factory=list)

@dataclass
class ChunkTranscript:
    """A chunk's transcription paired with its position and probed duration."""
    index: int
    duration_ms: int
    result: TranscriptionResult

@dataclass
class ReconciledTranscript:
    text: str
    language: Optional[str]
    duration: float # original time, seconds
    segments: List[TranscriptSegment] = field(default_factory=list)

@dataclass(frozen=True)
class SubtitleCue:
    index: int
    start_ms: int
    end_ms: int
    text: str

@dataclass
class TranscriptionRequest:
    """Inputs the pipeline needs from whatever shell drives it."""
    input_path: str
    api_key: str
    output_path: Optional[str] = None
    optimize: bool = True
    offset_seconds: float = 0.0
    chunk_minutes: Optional[float] = None

@dataclass
class PipelineResult:
    subtitle_path: str
    text: str
    language: Optional[str]
    duration: float
