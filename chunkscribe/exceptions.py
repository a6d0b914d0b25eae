"""Custom Exceptions for the chunkscribe application."""

from enum import Enum


class ChunkscribeError(Exception):
    """Base class for exceptions in this package."""
    pass

class ConfigurationError(ChunkscribeError):
    """Exception raised for errors in configuration loading or invalid settings."""
    pass

class FileSystemError(ChunkscribeError):
    """Exception raised for file system related errors (permissions, not found etc)."""
    pass

class ProbeError(ChunkscribeError):
    """Exception raised when a media duration cannot be determined."""
    pass

class ExtractionReason(Enum):
    """Classified cause of an audio extraction failure."""
    PERMISSION = "permission"
    MISSING_INPUT = "missing-input"
    CORRUPT_INPUT = "corrupt-input"
    NO_AUDIO_STREAM = "no-audio-stream"
    UNKNOWN = "unknown"

_EXTRACTION_HINTS = {
    ExtractionReason.PERMISSION: "Check read permission on the input and write permission on the temp directory.",
    ExtractionReason.MISSING_INPUT: "Check that the input path is correct and the file still exists.",
    ExtractionReason.CORRUPT_INPUT: "The file could not be decoded. Try re-downloading or re-exporting it.",
    ExtractionReason.NO_AUDIO_STREAM: "The video has no audio track, so there is nothing to transcribe.",
    ExtractionReason.UNKNOWN: "Run ffmpeg on the file manually to see the full diagnostic output.",
}

class ExtractionError(ChunkscribeError):
    """Exception raised for errors during audio extraction."""

    def __init__(self, message: str, reason: ExtractionReason = ExtractionReason.UNKNOWN):
        super().__init__(message)
        self.reason = reason

    @property
    def hint(self) -> str:
        return _EXTRACTION_HINTS[self.reason]

    def __str__(self) -> str:
        return f"{super().__str__()} ({self.reason.value}). {self.hint}"

class OptimizationError(ChunkscribeError):
    """Exception raised when audio time-scaling fails."""
    pass

class ChunkingError(ChunkscribeError):
    """Exception raised when audio cannot be split into uploadable chunks."""
    pass

class TranscriptionError(ChunkscribeError):
    """Exception raised for errors during transcription (network, service or malformed response)."""
    pass

class UnsupportedFormatError(ChunkscribeError):
    """Exception raised when the input extension is not in the accepted set."""
    pass

class FormattingError(ChunkscribeError):
    """Exception raised for errors during subtitle formatting."""
    pass

class PipelineTimeoutError(ChunkscribeError):
    """Exception raised when a run exceeds its configured deadline."""
    pass
