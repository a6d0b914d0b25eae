"""Runs chunk transcriptions on a bounded pool of worker threads and hands results back in index order."""

import logging
import queue
import threading
import time
from typing import Dict, Generic, List, Optional, Sequence, TypeVar

from tqdm import tqdm

from .exceptions import PipelineTimeoutError
from .models import ChunkAsset, ChunkTranscript, TranscriptionResult
from .transcriber import Transcriber
from .utils import seconds_to_ms

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CompletionBuffer(Generic[T]):
    """
    Holds results that finish out of order and releases them strictly by index.

    ``put`` returns whatever has become contiguous from the next expected index.
    """

    def __init__(self):
        self._pending: Dict[int, T] = {}
        self._next = 0

    def put(self, index: int, item: T) -> List[T]:
        if index < self._next or index in self._pending:
            raise ValueError(f"Result for index {index} was already received")
        self._pending[index] = item
        ready = []
        while self._next in self._pending:
            ready.append(self._pending.pop(self._next))
            self._next += 1
        return ready

    @property
    def waiting(self) -> int:
        return len(self._pending)


def _empty_result() -> TranscriptionResult:
    return TranscriptionResult(text="", language=None, duration=0.0, segments=[])


def _worker(
    transcriber: Transcriber,
    jobs: "queue.Queue[ChunkAsset]",
    results: queue.Queue,
    stop: threading.Event,
) -> None:
    """Takes chunks until the queue is drained or the run is abandoned."""
    while not stop.is_set():
        try:
            chunk = jobs.get_nowait()
        except queue.Empty:
            return
        try:
            results.put((chunk, transcriber.transcribe(chunk.asset.path), None))
        except Exception as e: # re-raised on the calling thread
            results.put((chunk, None, e))


def transcribe_chunks(
    transcriber: Transcriber,
    chunks: Sequence[ChunkAsset],
    max_workers: int = 1,
    timeout: Optional[float] = None,
    show_progress: bool = False,
) -> List[ChunkTranscript]:
    """
    Transcribes every chunk and returns ChunkTranscripts ordered by index.

    With ``max_workers == 1`` chunks run one at a time in index order.
    Chunks with zero probed duration are not uploaded and get an empty
    result. The first failure stops workers from taking further chunks and
    is re-raised. ``timeout`` bounds the whole call in seconds.

    Workers are daemon threads: on failure or timeout, uploads still in
    flight are abandoned and never hold up interpreter exit.

    Raises:
        PipelineTimeoutError: If the deadline passes before all chunks finish.
        TranscriptionError: As raised by the transcriber.
    """
    deadline = time.monotonic() + timeout if timeout is not None else None
    buffer: CompletionBuffer[ChunkTranscript] = CompletionBuffer()
    ordered: List[ChunkTranscript] = []
    progress = tqdm(total=len(chunks), desc="Transcribing", unit="chunk", disable=not show_progress)

    def collect(chunk: ChunkAsset, result: TranscriptionResult) -> None:
        progress.update(1)
        ordered.extend(buffer.put(chunk.index, ChunkTranscript(
            index=chunk.index,
            duration_ms=seconds_to_ms(chunk.duration),
            result=result,
        )))

    jobs: "queue.Queue[ChunkAsset]" = queue.Queue()
    for chunk in chunks:
        if seconds_to_ms(chunk.duration) <= 0:
            logger.info(f"Chunk {chunk.index} is empty, skipping upload.")
            collect(chunk, _empty_result())
        else:
            jobs.put(chunk)

    uploads = jobs.qsize()
    workers = max(1, min(max_workers, uploads))
    results: queue.Queue = queue.Queue()
    stop = threading.Event()
    if uploads:
        logger.info(f"Transcribing {uploads} chunk(s) with {workers} worker(s)...")
        for i in range(workers):
            threading.Thread(
                target=_worker,
                args=(transcriber, jobs, results, stop),
                name=f"transcribe_{i}",
                daemon=True,
            ).start()

    try:
        received = 0
        while received < uploads:
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                raise PipelineTimeoutError(
                    f"Run timed out with {uploads - received} of {len(chunks)} chunk(s) unfinished."
                )
            try:
                chunk, result, error = results.get(timeout=remaining)
            except queue.Empty:
                continue
            received += 1
            if error is not None:
                raise error
            logger.debug(f"Chunk {chunk.index} finished ({len(result.segments)} segments)")
            collect(chunk, result)
    finally:
        stop.set()
        progress.close()

    return ordered
