"""Configuration management for sqliteplus."""

import os
import logging
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

from sqliteplus.engine.executor import BEGIN_MODES

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Config:
    """Runtime configuration with validation."""
    database_path: str = ""
    queries_dir: Optional[str] = None
    begin_mode: str = "DEFERRED"
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate configuration after initialization."""
        errors = []

        self.begin_mode = (self.begin_mode or "").upper()
        if self.begin_mode not in BEGIN_MODES:
            errors.append(
                f"SQLITEPLUS_BEGIN_MODE must be one of {', '.join(BEGIN_MODES)}"
            )

        self.log_level = (self.log_level or "").upper()
        if self.log_level not in LOG_LEVELS:
            errors.append(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")

        if self.database_path and os.path.isdir(self.database_path):
            errors.append(f"SQLITEPLUS_DATABASE points to a directory: {self.database_path}")

        if errors:
            error_message = "Configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            raise ValueError(error_message)


def load_config() -> Config:
    """
    Load configuration from environment variables.

    Loads from .env file if present, then from environment variables.

    Returns:
        Config object with validated settings
    """
    load_dotenv()

    try:
        config = Config(
            database_path=os.getenv("SQLITEPLUS_DATABASE", ""),
            queries_dir=os.getenv("QUERY_DEFINITIONS_PATH") or None,
            begin_mode=os.getenv("SQLITEPLUS_BEGIN_MODE", "DEFERRED"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
        logger.debug("Configuration loaded successfully")
        return config
    except ValueError as error:
        logger.error(f"Failed to load configuration: {error}")
        raise


def setup_logging(log_level: str = "INFO"):
    """
    Setup logging configuration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
