"""Handles audio extraction from video files using ffmpeg."""

import ffmpeg
import os
import logging
from .exceptions import ExtractionError, ExtractionReason
from .models import MediaAsset
from typing import Optional
from .utils import ensure_dir_exists, FFMPEG_INSTALL_HINT

logger = logging.getLogger(__name__)

# Checked in order; first match wins
_STDERR_PATTERNS = (
    (ExtractionReason.PERMISSION, ("permission denied", "operation not permitted")),
    (ExtractionReason.MISSING_INPUT, ("no such file or directory",)),
    (ExtractionReason.NO_AUDIO_STREAM, (
        "does not contain any stream",
        "matches no streams",
        "output file does not contain any stream",
    )),
    (ExtractionReason.CORRUPT_INPUT, (
        "invalid data found when processing input",
        "moov atom not found",
        "could not find codec parameters",
        "error while decoding",
        "end of file",
    )),
)

def classify_ffmpeg_error(stderr_output: str) -> ExtractionReason:
    """Maps ffmpeg diagnostic output to an ExtractionReason."""
    lowered = (stderr_output or "").lower()
    for reason, needles in _STDERR_PATTERNS:
        if any(needle in lowered for needle in needles):
            return reason
    return ExtractionReason.UNKNOWN

class AudioExtractor:
    """Extracts a mono, speech-quality audio track from video files."""

    def __init__(self, ffmpeg_path: Optional[str] = None, sample_rate: int = 16000):
        """
        Initializes the AudioExtractor.

        Args:
            ffmpeg_path: Optional path to the ffmpeg executable.
                         If None, assumes ffmpeg is in the system PATH.
            sample_rate: Output sample rate in Hz.
        """
        self.ffmpeg_cmd = ffmpeg_path or 'ffmpeg'
        self.sample_rate = sample_rate
        logger.debug(f"Using ffmpeg command: {self.ffmpeg_cmd}")

    def extract_audio(self, video_filepath: str, output_audio_dir: str) -> MediaAsset:
        """
        Extracts the audio stream from a video file to a mono MP3 file.

        Args:
            video_filepath: Path to the input video file.
            output_audio_dir: Directory to save the extracted audio file.

        Returns:
            A temporary MediaAsset for the extracted audio. The caller owns the file.

        Raises:
            ExtractionError: If ffmpeg fails; ``reason`` classifies the failure.
            FileSystemError: If the output directory cannot be created/accessed.
        """
        logger.info(f"Starting audio extraction for: {video_filepath}")
        if not os.path.exists(video_filepath):
            raise ExtractionError(f"Input video file not found: {video_filepath}", ExtractionReason.MISSING_INPUT)

        ensure_dir_exists(output_audio_dir)

        base_name = os.path.splitext(os.path.basename(video_filepath))[0]

        output_audio_path = os.path.join(output_audio_dir, f"{base_name}_audio.mp3")
        logger.debug(f"Output audio path set to: {output_audio_path}")

        try:
            # vn: drop video, ac=1/ar: mono at ASR sample rate, q:a 2: high VBR quality
            (
                ffmpeg
                .input(video_filepath)
                .output(output_audio_path, vn=None, acodec='libmp3lame', ac=1, ar=self.sample_rate, **{'q:a': 2})
                .overwrite_output()
                .run(cmd=self.ffmpeg_cmd, capture_stdout=True, capture_stderr=True)
            )
        except FileNotFoundError as e:
            raise ExtractionError(FFMPEG_INSTALL_HINT, ExtractionReason.UNKNOWN) from e
        except ffmpeg.Error as e:
            stderr_output = e.stderr.decode('utf-8', errors='replace') if e.stderr else "No stderr output"
            reason = classify_ffmpeg_error(stderr_output)
            logger.error(f"ffmpeg error during audio extraction for {video_filepath} ({reason.value})")
            logger.debug(f"ffmpeg stderr: {stderr_output}")
            self._remove_partial(output_audio_path)
            last_line = stderr_output.strip().splitlines()[-1] if stderr_output.strip() else stderr_output
            raise ExtractionError(f"ffmpeg failed to extract audio from {video_filepath}: {last_line}", reason) from e

        size = os.path.getsize(output_audio_path)
        logger.info(f"Successfully extracted audio to: {output_audio_path} ({size / 1024 / 1024:.2f} MB)")
        return MediaAsset(path=output_audio_path, size_bytes=size, temporary=True)

    def _remove_partial(self, path: str) -> None:
        if os.path.exists(path):
            try:
                os.remove(path)
            except OSError:
                logger.warning(f"Could not clean up partially created audio file: {path}")
