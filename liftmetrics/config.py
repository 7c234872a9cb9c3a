"""LiftMetrics configuration management.

Loads configuration from environment variables with sensible defaults.
Defaults point at the OpenIPF bulk CSV published by OpenPowerlifting.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

DEFAULT_DATA_URL = "https://openpowerlifting.gitlab.io/opl-csv/files/openipf-latest.zip"
DEFAULT_REVISION_URL = "https://openpowerlifting.gitlab.io/opl-csv/bulk-csv.html"


@dataclass
class DBConfig:
    """Database connection configuration."""

    url: str = "sqlite+aiosqlite:///data/db/openipf.db"
    echo: bool = False  # SQL logging


@dataclass
class SourceConfig:
    """Remote dataset and revision page locations."""

    data_url: str = DEFAULT_DATA_URL
    revision_url: str = DEFAULT_REVISION_URL
    revision_marker: str = "Revision:"
    dataset_prefix: str = "openipf"


@dataclass
class PathsConfig:
    """Local filesystem layout for the cached dataset."""

    data_dir: Path = Path("data")
    archive_name: str = "openipf-latest.zip"
    lifters_file: str = "lifters.json"

    @property
    def archive_path(self) -> Path:
        """Where the downloaded zip archive is written."""
        return self.data_dir / self.archive_name

    @property
    def lifters_path(self) -> Path:
        """Where the lifter name export is written."""
        return self.data_dir / self.lifters_file


@dataclass
class TimeoutConfig:
    """Deadlines (seconds) for network and store operations."""

    http_seconds: float = 30.0
    download_seconds: float = 1800.0  # 30 minutes for the full archive
    load_seconds: float = 600.0
    metrics_seconds: float = 300.0
    query_seconds: float = 10.0


@dataclass
class AppConfig:
    """Root application configuration.

    Passed explicitly into the ingestion orchestrator; nothing in the
    pipeline reads module-level URLs or paths.
    """

    db: DBConfig = field(default_factory=DBConfig)
    source: SourceConfig = field(default_factory=SourceConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    log_level: str = "INFO"
    log_format: str = "text"  # json or text

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load configuration from environment variables.

        Optional (with defaults):
        - DATABASE_URL: SQLAlchemy async URL (default: local SQLite file)
        - LIFTMETRICS_DATA_DIR: Directory for archive, CSV and lifters.json
        - LIFTMETRICS_DATA_URL / LIFTMETRICS_REVISION_URL: Remote endpoints
        - LIFTMETRICS_*_TIMEOUT: Deadlines in seconds

        Raises:
            ValueError: If a numeric setting cannot be parsed
        """
        data_dir = Path(os.getenv("LIFTMETRICS_DATA_DIR", "data"))
        default_db_url = f"sqlite+aiosqlite:///{data_dir / 'db' / 'openipf.db'}"

        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
            db=DBConfig(
                url=os.getenv("DATABASE_URL", default_db_url),
                echo=os.getenv("DB_ECHO", "false").lower() == "true",
            ),
            source=SourceConfig(
                data_url=os.getenv("LIFTMETRICS_DATA_URL", DEFAULT_DATA_URL),
                revision_url=os.getenv("LIFTMETRICS_REVISION_URL", DEFAULT_REVISION_URL),
                revision_marker=os.getenv("LIFTMETRICS_REVISION_MARKER", "Revision:"),
                dataset_prefix=os.getenv("LIFTMETRICS_DATASET_PREFIX", "openipf"),
            ),
            paths=PathsConfig(
                data_dir=data_dir,
                archive_name=os.getenv("LIFTMETRICS_ARCHIVE_NAME", "openipf-latest.zip"),
            ),
            timeouts=TimeoutConfig(
                http_seconds=float(os.getenv("LIFTMETRICS_HTTP_TIMEOUT", "30")),
                download_seconds=float(os.getenv("LIFTMETRICS_DOWNLOAD_TIMEOUT", "1800")),
                load_seconds=float(os.getenv("LIFTMETRICS_LOAD_TIMEOUT", "600")),
                metrics_seconds=float(os.getenv("LIFTMETRICS_METRICS_TIMEOUT", "300")),
                query_seconds=float(os.getenv("LIFTMETRICS_QUERY_TIMEOUT", "10")),
            ),
        )


# Singleton instance (lazy-loaded)
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get or create singleton AppConfig instance from environment.

    Returns:
        AppConfig: Application configuration
    """
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def reset_config() -> None:
    """Drop the cached singleton so the next get_config() re-reads the environment."""
    global _config
    _config = None
