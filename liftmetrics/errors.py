"""Error taxonomy for the ingestion and metrics pipeline.

Every stage raises one of these, chained to the underlying cause. The
orchestrator never retries; callers decide what to do with a failed run.
"""

from __future__ import annotations


class LiftMetricsError(Exception):
    """Base class for all pipeline failures.

    The orchestrator attaches its partially filled ``RunResult`` as
    ``run_result`` before re-raising.
    """

    run_result = None


class NetworkError(LiftMetricsError):
    """Transport failure or non-success HTTP status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class OperationTimeoutError(LiftMetricsError, TimeoutError):
    """A network or store operation exceeded its deadline."""


class ArchiveError(LiftMetricsError):
    """The archive could not be opened or holds no CSV member."""


class ParseError(LiftMetricsError):
    """Header or type mismatch while reading the CSV."""


class StorageError(LiftMetricsError):
    """A store transaction or a local file write failed."""


class RevisionNotFoundError(LiftMetricsError):
    """Revision marker missing from the remote page or the local filename."""


class NoRowsError(LiftMetricsError):
    """A read query matched nothing."""
