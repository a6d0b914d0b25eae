"""Splits audio into contiguous, independently uploadable chunks with ffmpeg's segment muxer."""

import glob
import logging
import os
from typing import List, Optional

import ffmpeg

from .exceptions import ChunkingError
from .media_probe import MediaProber
from .models import ChunkAsset, MediaAsset
from .utils import FFMPEG_INSTALL_HINT, ensure_dir_exists, format_size

logger = logging.getLogger(__name__)


class Chunker:
    """Cuts one audio asset into pieces whose clocks each restart at zero."""

    def __init__(self, prober: MediaProber, max_upload_bytes: int, ffmpeg_path: Optional[str] = None):
        self.prober = prober
        self.max_upload_bytes = max_upload_bytes
        self.ffmpeg_cmd = ffmpeg_path or 'ffmpeg'

    def split(self, asset: MediaAsset, chunk_seconds_optimized: float, output_dir: str) -> List[ChunkAsset]:
        """
        Splits ``asset`` into chunks of ``chunk_seconds_optimized`` (the last may be shorter).

        Streams are copied, not re-encoded, so the pieces concatenate back to
        the source. Each chunk is probed for its real duration; the plan's
        length is only a request.

        Returns:
            ChunkAssets ordered by index.

        Raises:
            ChunkingError: If ffmpeg fails, produces nothing, or any chunk is
                           over the upload ceiling.
        """
        if chunk_seconds_optimized <= 0:
            raise ChunkingError(f"Chunk length must be positive, got {chunk_seconds_optimized!r}s")
        ensure_dir_exists(output_dir)

        base_name, ext = os.path.splitext(os.path.basename(asset.path))
        pattern = os.path.join(output_dir, f"{base_name}_chunk_%04d{ext}")
        logger.info(f"Splitting {asset.path} into {chunk_seconds_optimized:.1f}s chunks...")

        try:
            (
                ffmpeg
                .input(asset.path)
                .audio
                .output(pattern, f='segment', segment_time=f"{chunk_seconds_optimized:.3f}",
                        reset_timestamps=1, c='copy')
                .overwrite_output()
                .run(cmd=self.ffmpeg_cmd, capture_stdout=True, capture_stderr=True)
            )
        except FileNotFoundError as e:
            raise ChunkingError(FFMPEG_INSTALL_HINT) from e
        except ffmpeg.Error as e:
            stderr_output = e.stderr.decode('utf-8', errors='replace') if e.stderr else "No stderr output"
            logger.error(f"ffmpeg error while splitting {asset.path}")
            logger.debug(f"ffmpeg stderr: {stderr_output}")
            raise ChunkingError(f"ffmpeg failed to split {asset.path}: {stderr_output.strip()[-500:]}") from e

        chunk_paths = sorted(glob.glob(os.path.join(glob.escape(output_dir), f"{glob.escape(base_name)}_chunk_*{ext}")))
        if not chunk_paths:
            raise ChunkingError(f"Splitting {asset.path} produced no chunk files.")

        chunks = []
        for index, path in enumerate(chunk_paths):
            size = os.path.getsize(path)
            if size > self.max_upload_bytes:
                raise ChunkingError(
                    f"Chunk {index} ({format_size(size)}) still exceeds the {format_size(self.max_upload_bytes)} "
                    f"upload limit. Lower --chunk-minutes, or drop --raw so the audio is optimized first."
                )
            duration = self.prober.probe_duration(path)
            chunks.append(ChunkAsset(
                asset=MediaAsset(path=path, size_bytes=size, duration=duration, temporary=True),
                index=index,
                duration=duration,
            ))
            logger.debug(f"Chunk {index}: {path} ({duration:.2f}s, {format_size(size)})")

        total = sum(c.duration for c in chunks)
        if asset.duration is not None and abs(total - asset.duration) > max(1.0, asset.duration * 0.01):
            logger.warning(
                f"Chunk durations sum to {total:.2f}s but the source is {asset.duration:.2f}s; "
                f"timestamps follow the probed chunk durations."
            )
        logger.info(f"Created {len(chunks)} chunks.")
        return chunks
