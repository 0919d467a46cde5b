"""
Configuration management for the fake IRC server.

Reads configuration from an optional .env file and environment variables
with sensible defaults. Nothing is required; the CLI port argument
overrides the configured port.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Default .env file location (relative to the working directory)
DEFAULT_ENV_FILE = Path("fakeirc.env")

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

logger = logging.getLogger(__name__)


def _load_env_file():
    """Load environment variables from .env file if it exists."""
    env_path = Path(os.getenv("FAKEIRC_ENV_FILE", str(DEFAULT_ENV_FILE)))

    if env_path.exists():
        load_dotenv(env_path, override=False)  # Don't override existing env vars


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name, str(default))
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Invalid {name}: {value} (must be an integer)")


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.lower() in ("1", "true", "yes", "on")


@dataclass
class FakeIrcConfig:
    """Server configuration loaded from .env file and environment variables."""

    # Server settings
    host: str = "127.0.0.1"
    port: int = 1234
    server_name: str = "localhost"

    # Connection handling
    read_chunk_size: int = 4096
    max_line_bytes: int = 8192
    outbound_queue_size: int = 256

    # Send the 001-005 numerics after NICK/USER
    welcome_enabled: bool = True

    # Logging
    log_level: str = "INFO"

    @classmethod
    def load_config(cls) -> "FakeIrcConfig":
        """
        Load configuration from environment variables.

        Returns:
            FakeIrcConfig instance with loaded values

        Raises:
            ValueError: If configuration is invalid
        """
        # Load .env file first (if it exists)
        _load_env_file()

        config = cls(
            host=os.getenv("FAKEIRC_HOST", "127.0.0.1"),
            port=_int_env("FAKEIRC_PORT", 1234),
            server_name=os.getenv("FAKEIRC_SERVER_NAME", "localhost"),
            read_chunk_size=_int_env("FAKEIRC_READ_CHUNK_SIZE", 4096),
            max_line_bytes=_int_env("FAKEIRC_MAX_LINE_BYTES", 8192),
            outbound_queue_size=_int_env("FAKEIRC_OUTBOUND_QUEUE_SIZE", 256),
            welcome_enabled=_bool_env("FAKEIRC_WELCOME", True),
            log_level=os.getenv("FAKEIRC_LOG_LEVEL", "INFO"),
        )

        config.validate()

        return config

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: If configuration is invalid
        """
        # 0 lets the OS pick a free port
        if self.port < 0 or self.port > 65535:
            raise ValueError(f"Invalid port: {self.port} (must be 0-65535)")

        if not self.server_name or any(c.isspace() for c in self.server_name):
            raise ValueError(f"Invalid server name: {self.server_name!r} (must be a single word)")

        if self.read_chunk_size <= 0:
            raise ValueError(f"Invalid read chunk size: {self.read_chunk_size} (must be > 0)")

        if self.max_line_bytes <= 0:
            raise ValueError(f"Invalid max line bytes: {self.max_line_bytes} (must be > 0)")

        if self.outbound_queue_size <= 0:
            raise ValueError(f"Invalid outbound queue size: {self.outbound_queue_size} (must be > 0)")

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level: {self.log_level} "
                f"(must be one of: {', '.join(VALID_LOG_LEVELS)})"
            )


def load_config() -> FakeIrcConfig:
    """
    Load and validate configuration from environment variables.

    Raises:
        ValueError: If configuration is invalid
    """
    try:
        return FakeIrcConfig.load_config()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        raise
