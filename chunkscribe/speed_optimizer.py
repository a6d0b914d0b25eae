"""Time-scales audio with ffmpeg's atempo filter to shrink upload size and duration."""

import logging
import os
from typing import Optional

import ffmpeg

from .exceptions import OptimizationError
from .models import MediaAsset, OptimizationResult
from .utils import FFMPEG_INSTALL_HINT, format_size

logger = logging.getLogger(__name__)

DEFAULT_SPEED_FACTOR = 1.2


class SpeedOptimizer:
    """Speeds audio up by a fixed factor. Same input and factor, same output."""

    def __init__(self, speed_factor: float = DEFAULT_SPEED_FACTOR, ffmpeg_path: Optional[str] = None):
        if speed_factor is None or speed_factor <= 0:
            raise OptimizationError(f"Speed factor must be positive, got {speed_factor!r}")
        self.speed_factor = float(speed_factor)
        self.ffmpeg_cmd = ffmpeg_path or 'ffmpeg'

    def optimize(self, asset: MediaAsset, output_dir: str, enabled: bool = True) -> OptimizationResult:
        """
        Produces a sped-up copy of ``asset`` in ``output_dir``.

        When disabled (or the factor is 1.0) the input asset is returned as-is
        with a speed factor of 1.0; no file is written.

        Raises:
            OptimizationError: If ffmpeg is missing or fails.
        """
        if not enabled or self.speed_factor == 1.0:
            logger.info("Speed optimization skipped; using audio as-is.")
            return OptimizationResult(asset=asset, speed_factor=1.0)

        base_name = os.path.splitext(os.path.basename(asset.path))[0]
        output_path = os.path.join(output_dir, f"{base_name}_x{self.speed_factor:g}.mp3")
        logger.info(f"Speeding up audio by {self.speed_factor:g}x: {asset.path}")

        try:
            (
                ffmpeg
                .input(asset.path)
                .audio
                .filter('atempo', self.speed_factor)
                .output(output_path, acodec='libmp3lame', **{'q:a': 2})
                .overwrite_output()
                .run(cmd=self.ffmpeg_cmd, capture_stdout=True, capture_stderr=True)
            )
        except FileNotFoundError as e:
            raise OptimizationError(FFMPEG_INSTALL_HINT) from e
        except ffmpeg.Error as e:
            stderr_output = e.stderr.decode('utf-8', errors='replace') if e.stderr else "No stderr output"
            logger.error(f"ffmpeg error during speed optimization of {asset.path}")
            logger.debug(f"ffmpeg stderr: {stderr_output}")
            if os.path.exists(output_path):
                os.remove(output_path)
            raise OptimizationError(f"ffmpeg failed to speed up {asset.path}: {stderr_output.strip()[-500:]}") from e

        size = os.path.getsize(output_path)
        if asset.size_bytes:
            reduction = (1 - size / asset.size_bytes) * 100
            logger.info(
                f"Speed optimization complete: {format_size(asset.size_bytes)} -> {format_size(size)} "
                f"({reduction:.1f}% reduction)"
            )
        return OptimizationResult(
            asset=MediaAsset(path=output_path, size_bytes=size, temporary=True),
            speed_factor=self.speed_factor,
        )
