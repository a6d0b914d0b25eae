"""Command-Line Interface handler for chunkscribe."""

import argparse
import logging
import os
import sys

from .config_loader import ConfigLoader, resolve_api_key
from .log_setup import setup_logging
from .subtitle_generator import SubtitleGenerator, SUPPORTED_EXTENSIONS
from .models import TranscriptionRequest
from .exceptions import ChunkscribeError, ConfigurationError

logger = logging.getLogger(__name__) # Get logger for this module

VERSION = "0.1.0"
DEFAULT_CONFIG_PATH = "config.yaml"
PREVIEW_CHARS = 500

class CLIHandler:
    """Parses arguments and runs one transcription."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Creates the argument parser for the CLI."""
        parser = argparse.ArgumentParser(
            prog="chunkscribe",
            description="chunkscribe: transcribe long audio/video files to SRT subtitles.",
            epilog=f"Supported formats: {', '.join(SUPPORTED_EXTENSIONS)}",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter # Show defaults in help
        )
        parser.add_argument(
            "-v", "--version",
            action="version",
            version=f"%(prog)s {VERSION}"
        )
        parser.add_argument(
            "input",
            help="Path to the input audio or video file."
        )
        parser.add_argument(
            "-o", "--output",
            default=None,
            help="Path of the SRT file to write. Defaults to the input path with an .srt extension."
        )
        parser.add_argument(
            "-c", "--config",
            default=DEFAULT_CONFIG_PATH,
            help="Path to the configuration YAML file. Optional when left at the default."
        )
        parser.add_argument(
            "--raw",
            action="store_true",
            help="Disable speed optimization and upload the original audio."
        )
        parser.add_argument(
            "--offset",
            type=float,
            default=0.0,
            help="Seconds to add to every timestamp (may be negative)."
        )
        parser.add_argument(
            "--chunk-minutes",
            type=float,
            default=None,
            help="Always split into chunks of this many minutes of original time."
        )
        parser.add_argument(
            "--workers",
            type=int,
            default=None,
            help="Override the number of chunks transcribed in parallel."
        )
        parser.add_argument(
            "--api-key",
            default=None,
            help="OpenAI API key. Defaults to OPENAI_API_KEY or ~/.transcribe/config.json."
        )
        parser.add_argument(
            "--log-level",
            default="INFO",
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            help="Set the logging level for console and file output."
        )
        return parser

    def run(self, argv=None) -> None:
        """Parses arguments, sets up logging, loads config, and runs the generator."""
        args = self.parser.parse_args(argv)

        log_level = getattr(logging, args.log_level.upper(), logging.INFO)

        # --- Load Configuration ---
        try:
            config = ConfigLoader().load_config(args.config, required=args.config != DEFAULT_CONFIG_PATH)
        except (ConfigurationError, FileNotFoundError) as e:
            setup_logging(log_level=log_level)
            logger.critical(f"Failed to load configuration from {args.config}: {e}")
            sys.exit(1)

        setup_logging(log_level=log_level, log_dir=config['log_dir'], log_file=config['log_file'])

        # --- Apply CLI Overrides ---
        if args.workers is not None:
            if args.workers < 1:
                logger.critical("--workers must be at least 1")
                sys.exit(1)
            logger.info(f"Overriding max_workers from config with CLI argument: {args.workers}")
            config['max_workers'] = args.workers

        if not os.path.isfile(args.input):
            logger.critical(f"Input file not found or is not a file: {args.input}")
            sys.exit(1)

        try:
            request = TranscriptionRequest(
                input_path=args.input,
                api_key=resolve_api_key(args.api_key),
                output_path=args.output,
                optimize=not args.raw,
                offset_seconds=args.offset,
                chunk_minutes=args.chunk_minutes,
            )
            generator = SubtitleGenerator.from_config(config)
            result = generator.generate(request)
        except ChunkscribeError as e:
             logger.error(f"A chunkscribe error occurred: {e}")
             sys.exit(1)
        except KeyboardInterrupt:
             logger.warning("Process interrupted by user (Ctrl+C). Exiting.")
             sys.exit(1)
        except Exception as e:
             logger.critical(f"An unexpected critical error occurred at the top level: {e}", exc_info=True)
             sys.exit(2) # Use a different exit code for unexpected crashes

        preview = result.text[:PREVIEW_CHARS] + ("..." if len(result.text) > PREVIEW_CHARS else "")
        print(f"\nSRT file saved to: {result.subtitle_path}")
        print("\nTranscription preview:")
        print("-" * 60)
        print(preview)
        print("-" * 60)
        print(f"\nLanguage: {result.language or 'unknown'}")
        print(f"Duration: {result.duration:.2f}s")
        sys.exit(0)


def main() -> None:
    CLIHandler().run()
