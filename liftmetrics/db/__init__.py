"""Database layer for LiftMetrics with async SQLAlchemy."""

from liftmetrics.db.connection import get_session, init_db
from liftmetrics.db.models import (
    AgeGroupPerformanceModel,
    AggregatedMetricBenchModel,
    AggregatedMetricSBDModel,
    Base,
    LifterMetricModel,
    MaxLiftModel,
    PerformanceTrendModel,
    RecordModel,
    WeightClassDistributionModel,
)

__all__ = [
    "Base",
    "RecordModel",
    "LifterMetricModel",
    "MaxLiftModel",
    "AggregatedMetricSBDModel",
    "AggregatedMetricBenchModel",
    "WeightClassDistributionModel",
    "AgeGroupPerformanceModel",
    "PerformanceTrendModel",
    "get_session",
    "init_db",
]
