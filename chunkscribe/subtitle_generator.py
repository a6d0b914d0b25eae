"""Orchestrates the subtitle generation pipeline."""

import logging
import os
import time
from typing import Optional

from .audio_extractor import AudioExtractor
from .chunk_planner import plan_chunks
from .chunker import Chunker
from .dispatcher import transcribe_chunks
from .media_probe import MediaProber
from .speed_optimizer import SpeedOptimizer
from .subtitle_formatter import SubtitleFormatter, SRTFormatter
from .temp_assets import TempAssetRegistry
from .timeline import reconcile
from .transcriber import Transcriber, OpenAITranscriber
from .models import ChunkAsset, MediaAsset, PipelineResult, TranscriptionRequest
from .exceptions import (
    ChunkscribeError,
    FileSystemError,
    PipelineTimeoutError,
    UnsupportedFormatError,
)

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ('mp4', 'mp3', 'wav', 'm4a', 'webm', 'ogg', 'opus', 'mov', 'avi', 'mkv', 'flac')
VIDEO_EXTENSIONS = ('mp4', 'webm', 'mov', 'avi', 'mkv')

class SubtitleGenerator:
    """
    Manages the end-to-end process of turning one media file into an SRT file.
    """

    def __init__(
        self,
        config: dict,
        prober: MediaProber,
        audio_extractor: AudioExtractor,
        speed_optimizer: SpeedOptimizer,
        chunker: Chunker,
        transcriber: Optional[Transcriber] = None,
        subtitle_formatter: Optional[SubtitleFormatter] = None,
    ):
        """
        Initializes the SubtitleGenerator.

        Args:
            config: A dictionary containing configuration settings.
            prober: Duration probe shared by the pipeline stages.
            audio_extractor: Used for video inputs.
            speed_optimizer: Time-scales audio before upload.
            chunker: Splits audio that is too long or too large.
            transcriber: Transcription client. If None, an OpenAITranscriber is
                         built per run from the request's API key.
            subtitle_formatter: Defaults to SRTFormatter.
        """
        self.config = config
        self.prober = prober
        self.audio_extractor = audio_extractor
        self.speed_optimizer = speed_optimizer
        self.chunker = chunker
        self.transcriber = transcriber
        self.subtitle_formatter = subtitle_formatter or SRTFormatter()
        self.temp_dir = config.get('temp_dir')

    @classmethod
    def from_config(cls, config: dict, transcriber: Optional[Transcriber] = None) -> "SubtitleGenerator":
        """Builds the default ffmpeg-backed components from settings."""
        prober = MediaProber(ffprobe_path=config.get('ffprobe_path'))
        return cls(
            config=config,
            prober=prober,
            audio_extractor=AudioExtractor(ffmpeg_path=config.get('ffmpeg_path')),
            speed_optimizer=SpeedOptimizer(config['speed_factor'], ffmpeg_path=config.get('ffmpeg_path')),
            chunker=Chunker(prober, config['max_upload_bytes'], ffmpeg_path=config.get('ffmpeg_path')),
            transcriber=transcriber,
        )

    def _build_transcriber(self, api_key: str) -> Transcriber:
        return OpenAITranscriber(
            api_key=api_key,
            model=self.config['transcription_model'],
            word_timestamps=self.config['word_timestamps'],
            request_timeout=self.config['request_timeout_seconds'],
            max_retries=self.config['max_retries'],
            retry_max_wait=self.config['retry_max_wait_seconds'],
        )

    def _validate_input(self, input_path: str) -> str:
        """Returns the lower-case extension, or raises."""
        if not os.path.isfile(input_path):
            raise FileSystemError(f"File not found: {input_path}")
        ext = os.path.splitext(input_path)[1].lower().lstrip('.')
        if ext not in SUPPORTED_EXTENSIONS:
            raise UnsupportedFormatError(
                f"Unsupported format '{ext or input_path}'. Supported formats: {', '.join(SUPPORTED_EXTENSIONS)}"
            )
        return ext

    @staticmethod
    def _check_deadline(deadline: Optional[float], stage: str) -> None:
        if deadline is not None and time.monotonic() >= deadline:
            raise PipelineTimeoutError(f"Run timed out before {stage}.")

    def generate(self, request: TranscriptionRequest) -> PipelineResult:
        """
        Executes the full pipeline for a single input file.

        Every intermediate file is removed before this returns or raises.
        The input file itself is never modified or deleted.

        Args:
            request: Input path, credential and per-run options.

        Returns:
            The subtitle path plus the transcript's text, language and
            original-time duration.

        Raises:
            ChunkscribeError: For any configuration or processing errors in the pipeline.
        """
        start_time = time.time()
        timeout = self.config.get('run_timeout_seconds')
        deadline = time.monotonic() + timeout if timeout else None
        input_path = request.input_path
        logger.info(f"--- Starting transcription for: {input_path} ---")

        ext = self._validate_input(input_path)
        output_path = request.output_path or os.path.splitext(input_path)[0] + '.srt'
        transcriber = self.transcriber or self._build_transcriber(request.api_key)

        with TempAssetRegistry(self.temp_dir) as temps:
            try:
                source = MediaAsset(path=input_path, size_bytes=os.path.getsize(input_path), temporary=False)

                # 1. Extract audio from video containers
                if ext in VIDEO_EXTENSIONS:
                    logger.info("Step 1: Extracting audio...")
                    audio = temps.register_asset(self.audio_extractor.extract_audio(input_path, temps.work_dir))
                else:
                    logger.info("Step 1: Input is audio, no extraction needed.")
                    audio = source

                # 2. Speed optimization
                self._check_deadline(deadline, "speed optimization")
                logger.info("Step 2: Optimizing audio...")
                optimized = self.speed_optimizer.optimize(audio, temps.work_dir, enabled=request.optimize)
                temps.register_asset(optimized.asset)
                speed_factor = optimized.speed_factor

                # 3. Probe and plan
                self._check_deadline(deadline, "chunk planning")
                asset = self.prober.probe_asset(optimized.asset.path, temporary=optimized.asset.temporary)
                duration = asset.duration
                logger.info(
                    f"Step 3: Planning chunks for {duration:.2f}s of audio "
                    f"({duration * speed_factor:.2f}s original)..."
                )
                plan = plan_chunks(
                    duration, asset.size_bytes, speed_factor, self.config,
                    explicit_chunk_minutes=request.chunk_minutes,
                )

                # 4. Split if needed
                if plan.should_chunk:
                    self._check_deadline(deadline, "splitting")
                    logger.info("Step 4: Splitting audio into chunks...")
                    chunks = self.chunker.split(asset, plan.chunk_seconds_optimized, temps.work_dir)
                    for chunk in chunks:
                        temps.register_asset(chunk.asset)
                else:
                    logger.info("Step 4: Uploading audio as a single file.")
                    chunks = [ChunkAsset(asset=asset, index=0, duration=duration)]

                # 5. Transcribe
                self._check_deadline(deadline, "transcription")
                logger.info("Step 5: Transcribing...")
                remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
                transcripts = transcribe_chunks(
                    transcriber,
                    chunks,
                    max_workers=self.config.get('max_workers', 1),
                    timeout=remaining,
                    show_progress=self.config.get('show_progress', False),
                )

                # 6. Reconcile and write
                logger.info("Step 6: Reconciling timestamps and writing subtitles...")
                reconciled = reconcile(transcripts, speed_factor, request.offset_seconds)
                self.subtitle_formatter.write(reconciled, output_path)

                logger.info(f"--- Transcription completed successfully in {time.time() - start_time:.2f} seconds ---")
                return PipelineResult(
                    subtitle_path=output_path,
                    text=reconciled.text,
                    language=reconciled.language,
                    duration=reconciled.duration,
                )

            except ChunkscribeError as e:
                logger.error(f"Transcription failed: {e}", exc_info=False) # No stack needed for expected errors
                raise
            except Exception as e:
                logger.critical(f"An unexpected critical error occurred during transcription: {e}", exc_info=True)
                raise ChunkscribeError(f"An unexpected critical error occurred: {e}") from e
