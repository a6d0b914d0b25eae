"""Reports media durations via ffprobe."""

import logging
import os
from typing import Optional

import ffmpeg

from .exceptions import ProbeError
from .models import MediaAsset
from .utils import FFMPEG_INSTALL_HINT

logger = logging.getLogger(__name__)


class MediaProber:
    """Thin wrapper around ``ffmpeg.probe`` that always yields seconds or raises."""

    def __init__(self, ffprobe_path: Optional[str] = None):
        self.ffprobe_cmd = ffprobe_path or 'ffprobe'

    def probe_duration(self, media_path: str) -> float:
        """
        Returns the duration of a media file in seconds.

        Uses the container duration and falls back to the longest stream
        duration when the container does not report one.

        Raises:
            ProbeError: If ffprobe is missing, the file is undecodable, or the
                        reported duration is not a non-negative number.
        """
        try:
            info = ffmpeg.probe(media_path, cmd=self.ffprobe_cmd)
        except FileNotFoundError as e:
            raise ProbeError(FFMPEG_INSTALL_HINT) from e
        except ffmpeg.Error as e:
            stderr_output = e.stderr.decode('utf-8', errors='replace').strip() if e.stderr else "No stderr output"
            logger.error(f"ffprobe failed for {media_path}: {stderr_output}")
            raise ProbeError(f"Could not read media duration of {media_path}: {stderr_output}") from e

        raw = (info.get('format') or {}).get('duration')
        if raw is None:
            stream_durations = [s.get('duration') for s in info.get('streams', []) if s.get('duration') is not None]
            raw = max(stream_durations, key=_as_float_or_zero) if stream_durations else None
        if raw is None:
            raise ProbeError(f"ffprobe reported no duration for {media_path}")

        try:
            duration = float(raw)
        except (TypeError, ValueError) as e:
            raise ProbeError(f"ffprobe returned a non-numeric duration for {media_path}: {raw!r}") from e
        if duration < 0 or duration != duration:
            raise ProbeError(f"ffprobe returned an invalid duration for {media_path}: {raw!r}")

        logger.debug(f"Probed {media_path}: {duration:.3f}s")
        return duration

    def probe_asset(self, media_path: str, temporary: bool = True) -> MediaAsset:
        """Builds a MediaAsset with size and duration filled in."""
        return MediaAsset(
            path=media_path,
            size_bytes=os.path.getsize(media_path),
            duration=self.probe_duration(media_path),
            temporary=temporary,
        )


def _as_float_or_zero(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0
