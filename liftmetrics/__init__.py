"""LiftMetrics - OpenIPF ingestion and lifter metrics."""

__version__ = "0.1.0"
