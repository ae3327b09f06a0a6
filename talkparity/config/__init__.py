"""Simple YAML configuration loader for TalkParity."""

import os
import yaml
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from ..errors import ConfigurationError
from ..models.audio import CaptureConstraints

logger = logging.getLogger(__name__)

API_KEY_ENV_VAR = "ASSEMBLYAI_API_KEY"
DEFAULT_BASE_URL = "https://api.assemblyai.com/v2"


class TalkParityConfig:
    """TalkParity configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, built-in defaults
                        are used and only the environment is consulted.
        """
        self.config_file = Path(config_path) if config_path else None

        if self.config_file is None:
            logger.info("No configuration file given, using defaults")
            self.config: Dict[str, Any] = {}
            return

        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}") from e

        if not config:
            raise ValueError("Configuration file is empty")
        if not isinstance(config, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")

        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        if 'logging' in config and 'file_path' in config['logging']:
            log_path = config['logging']['file_path']
            if not os.path.isabs(log_path):
                config['logging']['file_path'] = str(config_dir / log_path)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'polling.max_attempts').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'assemblyai.api_key')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set")

    def get_api_key(self) -> str:
        """Get the AssemblyAI API key; the environment overrides the file.

        Raises:
            ConfigurationError: If no key is configured anywhere
        """
        api_key = os.environ.get(API_KEY_ENV_VAR) or self.get('assemblyai.api_key')
        if not api_key:
            raise ConfigurationError(
                f"API key not set. Configure assemblyai.api_key or the {API_KEY_ENV_VAR} environment variable."
            )
        return str(api_key)

    def get_capture_constraints(self) -> CaptureConstraints:
        """Build microphone capture constraints from the audio section."""
        return CaptureConstraints(
            sample_rate=int(self.get('audio.sample_rate', 44100)),
            channels=int(self.get('audio.channels', 1)),
            chunk_size=int(self.get('audio.chunk_size', 1024)),
            echo_cancellation=bool(self.get('audio.echo_cancellation', True)),
            noise_suppression=bool(self.get('audio.noise_suppression', True)),
        )


@dataclass(frozen=True)
class ClientSettings:
    """Explicit configuration handed to the transcription client."""
    api_key: Optional[str]
    base_url: str = DEFAULT_BASE_URL
    poll_interval_seconds: float = 5.0
    max_poll_attempts: int = 60
    min_upload_bytes: int = 1000
    request_timeout_seconds: float = 60.0

    def __post_init__(self):
        # Endpoints are joined as f"{base_url}/upload"
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    @classmethod
    def from_config(cls, config: TalkParityConfig) -> "ClientSettings":
        """Build settings from a loaded configuration.

        A missing API key is not an error here; the client rejects it on first use.
        """
        try:
            api_key = config.get_api_key()
        except ConfigurationError:
            api_key = None

        return cls(
            api_key=api_key,
            base_url=str(config.get('assemblyai.base_url', DEFAULT_BASE_URL)),
            poll_interval_seconds=float(config.get('polling.interval_seconds', 5.0)),
            max_poll_attempts=int(config.get('polling.max_attempts', 60)),
            min_upload_bytes=int(config.get('upload.min_bytes', 1000)),
            request_timeout_seconds=float(config.get('assemblyai.request_timeout_seconds', 60.0)),
        )
