"""Type definitions for pipeline operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class RunStatus(str, Enum):
    """Status of an ingestion run."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class Stage(str, Enum):
    """Pipeline stages, in execution order."""

    REVISION_CHECK = "revision_check"
    DOWNLOAD = "download"
    EXTRACT = "extract"
    LOAD = "load"
    METRICS = "metrics"
    EXPORT = "export"


@dataclass
class MetricsResult:
    """Result of one metrics pipeline execution."""

    rows_by_calculator: dict[str, int] = field(default_factory=dict)
    duration_seconds: float = 0.0

    @property
    def calculators_run(self) -> list[str]:
        return list(self.rows_by_calculator)


@dataclass
class RunResult:
    """Result of a full ingestion run."""

    status: RunStatus
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    message: str = ""
    local_revision: str | None = None
    remote_revision: str | None = None
    csv_path: str | None = None
    bytes_downloaded: int = 0
    records_loaded: int = 0
    metrics: MetricsResult | None = None
    failed_stage: Stage | None = None
    error_details: dict | None = None
    stages_completed: list[Stage] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        """Check if the run left the store in a good state."""
        return self.status in (RunStatus.SUCCESS, RunStatus.SKIPPED)
