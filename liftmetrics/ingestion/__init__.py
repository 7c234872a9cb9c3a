"""Data ingestion module for LiftMetrics.

Handles the revision check, archive download and extraction, and loading the
OpenIPF CSV into the records table.
"""

from liftmetrics.ingestion.archive import extract_csv
from liftmetrics.ingestion.downloader import download_file
from liftmetrics.ingestion.records import load_records
from liftmetrics.ingestion.revision import check_for_update

__all__ = ["check_for_update", "download_file", "extract_csv", "load_records"]
