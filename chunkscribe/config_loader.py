"""Handles loading configuration from YAML files and resolving the API key."""

import json
import yaml
import os
import logging
from typing import Optional
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    'speed_factor': 1.2,
    'max_upload_bytes': 24 * 1024 * 1024, # API limit is 25 MB; keep a margin
    'auto_chunk_minutes': 45,
    'default_chunk_minutes': 20,
    'min_chunk_seconds': 60,
    'transcription_model': 'whisper-1',
    'word_timestamps': False,
    'request_timeout_seconds': 600,
    'max_retries': 3,
    'retry_max_wait_seconds': 30,
    'max_workers': 4,
    'run_timeout_seconds': None,
    'temp_dir': None,
    'ffmpeg_path': None,
    'ffprobe_path': None,
    'log_dir': 'logs',
    'log_file': 'chunkscribe.log',
    'show_progress': True,
}

_POSITIVE_KEYS = (
    'speed_factor', 'max_upload_bytes', 'auto_chunk_minutes', 'default_chunk_minutes',
    'min_chunk_seconds', 'request_timeout_seconds', 'retry_max_wait_seconds',
)

CREDENTIALS_PATH = os.path.join('~', '.transcribe', 'config.json')

class ConfigLoader:
    """Loads configuration settings from a YAML file."""

    def load_config(self, config_path: Optional[str] = None, required: bool = True) -> dict:
        """
        Loads configuration from the specified YAML file path, merged over the defaults.

        Args:
            config_path: The path to the YAML configuration file. None means defaults only.
            required: If False, a missing file yields the defaults instead of an error.

        Returns:
            A dictionary containing the validated configuration settings.

        Raises:
            FileNotFoundError: If a required configuration file does not exist.
            ConfigurationError: If the file cannot be parsed as YAML, if there are
                              other reading errors, or if a value is out of range.
        """
        config = dict(DEFAULT_CONFIG)
        if config_path is None:
            return self.validate(config)

        logger.info(f"Attempting to load configuration from: {config_path}")
        if not os.path.exists(config_path):
            if not required:
                logger.info(f"No configuration file at {config_path}, using defaults.")
                return self.validate(config)
            logger.error(f"Configuration file not found at path: {config_path}")
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        if not os.path.isfile(config_path):
             logger.error(f"Configuration path is not a file: {config_path}")
             raise ConfigurationError(f"Configuration path is not a file: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Invalid YAML format in {config_path}: {e}") from e
        except IOError as e:
            logger.error(f"Error reading configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Could not read configuration file {config_path}: {e}") from e

        if loaded is None:
            loaded = {} # empty file
        if not isinstance(loaded, dict):
            logger.error(f"Configuration file {config_path} did not load as a dictionary (root object).")
            raise ConfigurationError(f"Invalid YAML structure in {config_path}. Root must be a mapping (dictionary).")

        unknown = sorted(set(loaded) - set(DEFAULT_CONFIG))
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {', '.join(unknown)}")
        config.update({k: v for k, v in loaded.items() if k in DEFAULT_CONFIG})
        logger.info(f"Configuration loaded successfully from {config_path}")
        return self.validate(config)

    def validate(self, config: dict) -> dict:
        """Checks numeric settings are in range. Returns the same mapping."""
        for key in _POSITIVE_KEYS:
            value = config.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ConfigurationError(f"'{key}' must be a positive number, got {value!r}")
        for key, minimum in (('max_workers', 1), ('max_retries', 0)):
            value = config.get(key)
            if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
                raise ConfigurationError(f"'{key}' must be an integer >= {minimum}, got {value!r}")
        timeout = config.get('run_timeout_seconds')
        if timeout is not None and (not isinstance(timeout, (int, float)) or timeout <= 0):
            raise ConfigurationError(f"'run_timeout_seconds' must be positive or null, got {timeout!r}")
        return config


def resolve_api_key(explicit: Optional[str] = None, credentials_path: str = CREDENTIALS_PATH) -> str:
    """
    Finds the OpenAI API key: explicit value, then OPENAI_API_KEY, then the
    JSON credentials file (``{"apiKey": "sk-..."}``).

    Raises:
        ConfigurationError: If no key is found anywhere.
    """
    if explicit:
        return explicit
    api_key = os.environ.get('OPENAI_API_KEY')
    if api_key:
        return api_key

    path = os.path.expanduser(credentials_path)
    if os.path.isfile(path):
        try:
            with open(path, 'r', encoding='utf-8') as f:
                api_key = json.load(f).get('apiKey')
        except (OSError, ValueError, AttributeError) as e:
            logger.warning(f"Could not read credentials file {path}: {e}")
        if api_key:
            logger.debug(f"Using API key from {path}")
            return api_key

    raise ConfigurationError(
        "OPENAI_API_KEY not found. Get a key at https://platform.openai.com/api-keys, then either\n"
        "  export OPENAI_API_KEY=sk-...\n"
        "or store it permanently:\n"
        "  mkdir -p ~/.transcribe && echo '{\"apiKey\": \"sk-...\"}' > ~/.transcribe/config.json"
    )
