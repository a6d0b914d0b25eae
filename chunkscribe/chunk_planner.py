"""Decides whether and how finely to split audio before upload."""

import logging
from typing import Optional

from .exceptions import ConfigurationError
from .models import ChunkPlan

logger = logging.getLogger(__name__)

# Size-triggered chunks aim for this share of the upload ceiling
SIZE_SAFETY_RATIO = 0.9


def plan_chunks(
    duration_optimized: float,
    file_size_bytes: int,
    speed_factor: float,
    config: dict,
    explicit_chunk_minutes: Optional[float] = None,
) -> ChunkPlan:
    """
    Computes the chunk plan for one asset.

    Rules, first match wins: an explicit chunk size; a file above the upload
    ceiling; an original-time duration above the auto-chunk threshold.
    Chunk lengths are chosen in original time, clamped to the configured
    floor, then converted into the optimized time the splitter works in.

    Args:
        duration_optimized: Probed duration of the (possibly sped-up) asset, seconds.
        file_size_bytes: Size of that asset.
        speed_factor: Factor the asset was sped up by (1.0 if not).
        config: Settings from ConfigLoader.
        explicit_chunk_minutes: User-requested chunk length, if any.

    Returns:
        A ChunkPlan; ``should_chunk`` False means upload the asset whole.
    """
    if speed_factor is None or speed_factor <= 0:
        raise ConfigurationError(f"Speed factor must be positive, got {speed_factor!r}")
    if explicit_chunk_minutes is not None and explicit_chunk_minutes <= 0:
        raise ConfigurationError(f"Chunk length must be positive, got {explicit_chunk_minutes!r} minutes")

    max_upload_bytes = config['max_upload_bytes']
    default_seconds = config['default_chunk_minutes'] * 60.0
    min_seconds = config['min_chunk_seconds']
    original_duration = duration_optimized * speed_factor

    if explicit_chunk_minutes is not None:
        reason, seconds = "explicit", explicit_chunk_minutes * 60.0
    elif file_size_bytes > max_upload_bytes:
        reason, seconds = "size", _size_limited_seconds(
            duration_optimized, file_size_bytes, speed_factor, max_upload_bytes, default_seconds)
    elif original_duration > config['auto_chunk_minutes'] * 60.0:
        reason, seconds = "duration", default_seconds
    else:
        logger.info(
            f"No chunking needed ({original_duration / 60:.1f} min, {file_size_bytes / 1024 / 1024:.2f} MB)."
        )
        return ChunkPlan(
            should_chunk=False,
            chunk_seconds=original_duration,
            chunk_seconds_optimized=duration_optimized,
            reason="none",
        )

    if seconds < min_seconds:
        logger.warning(f"Chunk length {seconds:.0f}s is below the {min_seconds}s floor; using {min_seconds}s.")
        seconds = float(min_seconds)

    plan = ChunkPlan(
        should_chunk=True,
        chunk_seconds=seconds,
        chunk_seconds_optimized=seconds / speed_factor,
        reason=reason,
    )
    logger.info(
        f"Chunking ({reason}): {plan.chunk_seconds / 60:.1f} min per chunk "
        f"({plan.chunk_seconds_optimized:.1f}s of {speed_factor:g}x audio)."
    )
    return plan


def _size_limited_seconds(duration_optimized, file_size_bytes, speed_factor, max_upload_bytes, default_seconds):
    """Default length, shortened so one chunk at the file's average bitrate fits the ceiling."""
    if duration_optimized <= 0:
        return default_seconds
    bytes_per_second = file_size_bytes / duration_optimized
    fitting_optimized = max_upload_bytes * SIZE_SAFETY_RATIO / bytes_per_second
    return min(default_seconds, fitting_optimized * speed_factor)
