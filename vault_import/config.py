"""
Configuration management for the Vault Import service.

Environment-based configuration using python-dotenv so deployments can tune
retry rounds, capacity scaling and table names without code changes.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class RetryConfig:
    """Retry round configuration."""

    # Total creation rounds (initial attempt plus retries)
    MAX_ROUNDS: int = int(os.getenv("IMPORT_MAX_ROUNDS", "4"))

    # Upper bound of the random delay before a retry, in seconds
    BACKOFF_MAX_SECONDS: float = float(os.getenv("IMPORT_BACKOFF_MAX_SECONDS", "3.0"))


class CapacityConfig:
    """Write throughput scaling configuration."""

    # Raise throughput before a bulk write
    ENABLED: bool = os.getenv("CAPACITY_SCALING_ENABLED", "true").lower() == "true"

    # Interval between status polls while a change is applied, in seconds
    POLL_INTERVAL_SECONDS: float = float(os.getenv("CAPACITY_POLL_INTERVAL_SECONDS", "1.0"))

    # One extra unit per this many records in the batch
    RECORDS_PER_UNIT: int = int(os.getenv("CAPACITY_RECORDS_PER_UNIT", "200"))

    # Base units added on top of the per-record units
    FOLDER_BASE_UNITS: int = int(os.getenv("CAPACITY_FOLDER_BASE_UNITS", "1"))
    ITEM_BASE_UNITS: int = int(os.getenv("CAPACITY_ITEM_BASE_UNITS", "2"))

    # Throughput restored after the import
    BASELINE_UNITS: int = int(os.getenv("CAPACITY_BASELINE_UNITS", "1"))


class StorageConfig:
    """Storage resource names."""

    FOLDERS_TABLE: str = os.getenv("FOLDERS_TABLE", "folders")
    CIPHERS_TABLE: str = os.getenv("CIPHERS_TABLE", "ciphers")


class ServerConfig:
    """HTTP server configuration."""

    HOST: str = os.getenv("SERVER_HOST", "127.0.0.1")
    PORT: int = int(os.getenv("SERVER_PORT", "8080"))


class LoggingConfig:
    """Logging configuration."""

    # Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Log directory
    LOG_DIR: Path = Path(os.getenv("LOG_DIR", "logs"))

    # Log format
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s%(context)s"

    # Date format
    DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    # Maximum log file size in bytes (10MB default)
    MAX_LOG_SIZE: int = int(os.getenv("MAX_LOG_SIZE", str(10 * 1024 * 1024)))

    # Number of backup log files to keep
    BACKUP_COUNT: int = int(os.getenv("BACKUP_COUNT", "5"))

    @classmethod
    def ensure_log_directory(cls) -> None:
        """Create log directory if it doesn't exist."""
        cls.LOG_DIR.mkdir(parents=True, exist_ok=True)


class AppConfig:
    """Main application configuration aggregating all config classes."""

    retry = RetryConfig
    capacity = CapacityConfig
    storage = StorageConfig
    server = ServerConfig
    logging = LoggingConfig

    # Application metadata
    APP_NAME: str = "Vault Import"
    VERSION: str = "0.1.0"

    @classmethod
    def initialize(cls) -> None:
        """Create directories required at runtime."""
        LoggingConfig.ensure_log_directory()

    @classmethod
    def validate(cls) -> tuple[bool, list[str]]:
        """
        Validate configuration settings.

        Returns:
            Tuple of (is_valid, error_messages)
        """
        errors = []

        if RetryConfig.MAX_ROUNDS < 1:
            errors.append("IMPORT_MAX_ROUNDS must be at least 1")

        if RetryConfig.BACKOFF_MAX_SECONDS < 0:
            errors.append("IMPORT_BACKOFF_MAX_SECONDS must not be negative")

        if CapacityConfig.POLL_INTERVAL_SECONDS <= 0:
            errors.append("CAPACITY_POLL_INTERVAL_SECONDS must be greater than 0")

        if CapacityConfig.RECORDS_PER_UNIT < 1:
            errors.append("CAPACITY_RECORDS_PER_UNIT must be at least 1")

        if CapacityConfig.BASELINE_UNITS < 1:
            errors.append("CAPACITY_BASELINE_UNITS must be at least 1")

        if StorageConfig.FOLDERS_TABLE == StorageConfig.CIPHERS_TABLE:
            errors.append("FOLDERS_TABLE and CIPHERS_TABLE must differ")

        return (len(errors) == 0, errors)


# Initialize configuration on module import
AppConfig.initialize()
