"""Maps per-chunk transcripts back onto the original media timeline.

Each chunk's timestamps are local to that chunk and expressed in optimized
(sped-up) time. A chunk's position is the sum of the durations of the
chunks before it, so a local time ``t`` maps to::

    (t + offset) * speed_factor + user_offset

All arithmetic is on integer milliseconds; rounding happens once per value.
"""

import logging
from dataclasses import dataclass
from itertools import accumulate
from typing import Iterable, List, Sequence

from .exceptions import ConfigurationError
from .models import ChunkTranscript, ReconciledTranscript, TranscriptSegment, Word
from .utils import seconds_to_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimelineTransform:
    speed_factor: float = 1.0
    user_offset_ms: int = 0
    cumulative_offset_ms: int = 0

    def apply(self, ms: int) -> int:
        return int(round((ms + self.cumulative_offset_ms) * self.speed_factor + self.user_offset_ms))

    def word(self, word: Word) -> Word:
        return Word(text=word.text, start_ms=self.apply(word.start_ms), end_ms=self.apply(word.end_ms))

    def segment(self, segment: TranscriptSegment) -> TranscriptSegment:
        return TranscriptSegment(
            start_ms=self.apply(segment.start_ms),
            end_ms=self.apply(segment.end_ms),
            text=segment.text,
            words=tuple(self.word(w) for w in segment.words),
        )


def chunk_offsets(durations_ms: Iterable[int]) -> List[int]:
    """Offset of chunk i is the sum of durations 0..i-1."""
    return list(accumulate(durations_ms, initial=0))[:-1]


def reconcile(
    chunks: Sequence[ChunkTranscript],
    speed_factor: float = 1.0,
    user_offset_seconds: float = 0.0,
) -> ReconciledTranscript:
    """
    Merges chunk transcripts into one transcript in original time.

    Args:
        chunks: One entry per chunk. Order is taken from ``index``, not from
                the sequence position.
        speed_factor: Factor the audio was sped up by before splitting.
        user_offset_seconds: Shift applied to every timestamp after scaling.

    Returns:
        A ReconciledTranscript whose segments are stable-sorted by start
        time. Language comes from chunk 0; text is the non-empty chunk texts
        joined by newlines.
    """
    if speed_factor is None or speed_factor <= 0:
        raise ConfigurationError(f"Speed factor must be positive, got {speed_factor!r}")

    ordered = sorted(chunks, key=lambda c: c.index)
    offsets = chunk_offsets(c.duration_ms for c in ordered)
    user_offset_ms = seconds_to_ms(user_offset_seconds)

    segments: List[TranscriptSegment] = []
    texts: List[str] = []
    language = ordered[0].result.language if ordered else None

    for chunk, offset in zip(ordered, offsets):
        transform = TimelineTransform(speed_factor, user_offset_ms, offset)
        segments.extend(transform.segment(seg) for seg in chunk.result.segments)

        text = chunk.result.text.strip()
        if chunk.duration_ms > 0 and text:
            texts.append(text)

        detected = chunk.result.language
        if chunk.index > 0 and detected and language and detected != language:
            logger.warning(
                f"Chunk {chunk.index} detected language '{detected}', keeping '{language}' from the first chunk."
            )

    segments.sort(key=lambda s: s.start_ms)
    total_optimized_ms = sum(c.duration_ms for c in ordered)
    duration = total_optimized_ms * speed_factor / 1000.0

    logger.info(
        f"Reconciled {len(ordered)} chunk(s) into {len(segments)} segments "
        f"covering {duration:.2f}s of original time."
    )
    return ReconciledTranscript(
        text="\n".join(texts),
        language=language,
        duration=duration,
        segments=segments,
    )
