"""Handles formatting reconciled transcripts into subtitle files (SRT)."""

import logging
from abc import ABC, abstractmethod
from typing import List

from .models import ReconciledTranscript, SubtitleCue
from .exceptions import FormattingError
from .utils import format_time_srt

logger = logging.getLogger(__name__)

class SubtitleFormatter(ABC):
    """Abstract base class for subtitle formatters."""

    @abstractmethod
    def render(self, transcript: ReconciledTranscript) -> str:
        """
        Formats the transcript into subtitle text. Must not touch the filesystem.

        Args:
            transcript: Reconciled transcript with segments already in order.

        Returns:
            The complete subtitle document.
        """
        pass

    def write(self, transcript: ReconciledTranscript, output_path: str) -> None:
        """
        Renders the transcript and saves it as UTF-8.

        Raises:
            FormattingError: If the file cannot be written.
        """
        logger.info(f"Writing subtitles to: {output_path}")
        content = self.render(transcript)
        try:
            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(content)
        except OSError as e:
            logger.error(f"Failed to write subtitle file to {output_path}: {e}", exc_info=True)
            raise FormattingError(f"Could not write subtitle file {output_path}: {e}") from e
        logger.info(f"Successfully wrote {len(transcript.segments)} subtitle blocks to {output_path}")


def build_cues(transcript: ReconciledTranscript) -> List[SubtitleCue]:
    """One cue per segment, numbered from 1, text trimmed."""
    return [
        SubtitleCue(index=i, start_ms=seg.start_ms, end_ms=seg.end_ms, text=seg.text.strip())
        for i, seg in enumerate(transcript.segments, start=1)
    ]


class SRTFormatter(SubtitleFormatter):
    """Formats subtitles into the SRT (SubRip Text) format."""

    def render(self, transcript: ReconciledTranscript) -> str:
        blocks = []
        for cue in build_cues(transcript):
            blocks.append(
                f"{cue.index}\n"
                f"{format_time_srt(cue.start_ms)} --> {format_time_srt(cue.end_ms)}\n"
                f"{cue.text}\n\n"
            )
        return "".join(blocks)
