"""Read-only queries over the finished tables.

This is the only interface the serving layer uses; nothing here writes.
Every query runs under a deadline and raises ``NoRowsError`` when the
athlete is unknown.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from liftmetrics.db.models import (
    Base,
    LifterMetricModel,
    PerformanceTrendModel,
    RecordModel,
)
from liftmetrics.errors import NoRowsError, OperationTimeoutError, StorageError

T = TypeVar("T")

DEFAULT_QUERY_TIMEOUT = 10.0


@dataclass
class LifterDetails:
    """One meet for an athlete with its attempt metrics."""

    name: str
    age: float | None
    date: str
    meet_name: str
    successful_squat_attempts: int
    successful_bench_attempts: int
    successful_deadlift_attempts: int
    total_successful_attempts: int
    squat1_perc: float | None
    squat2_perc: float | None
    squat3_perc: float | None
    bench1_perc: float | None
    bench2_perc: float | None
    bench3_perc: float | None
    deadlift1_perc: float | None
    deadlift2_perc: float | None
    deadlift3_perc: float | None
    squat1_to2_kg: float | None
    squat2_to3_kg: float | None
    bench1_to2_kg: float | None
    bench2_to3_kg: float | None
    deadlift1_to2_kg: float | None
    deadlift2_to3_kg: float | None


@dataclass
class LifterPerformance:
    """Best lifts and total at one meet."""

    date: str
    squat: float
    bench: float
    deadlift: float
    total: float


@dataclass
class LifterStats:
    """Averages across an athlete's whole history."""

    name: str
    avg_squat_success: float
    avg_bench_success: float
    avg_deadlift_success: float
    avg_squat1_to2_kg: float | None
    avg_squat2_to3_kg: float | None
    avg_bench1_to2_kg: float | None
    avg_bench2_to3_kg: float | None
    avg_deadlift1_to2_kg: float | None
    avg_deadlift2_to3_kg: float | None


async def _with_timeout(operation: str, awaitable: Awaitable[T], timeout: float) -> T:
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise OperationTimeoutError(f"{operation}: database query timed out") from e
    except SQLAlchemyError as e:
        raise StorageError(f"{operation}: {e}") from e


async def get_all_lifters(session: AsyncSession, timeout: float = DEFAULT_QUERY_TIMEOUT) -> list[str]:
    """Distinct athlete names, alphabetically."""
    query = select(RecordModel.name).distinct().order_by(RecordModel.name)
    result = await _with_timeout("querying lifters", session.execute(query), timeout)
    names = list(result.scalars().all())
    if not names:
        raise NoRowsError("No lifters in records")
    return names


async def get_lifter_details(
    session: AsyncSession, name: str, timeout: float = DEFAULT_QUERY_TIMEOUT
) -> list[LifterDetails]:
    """Every meet for ``name`` with attempt metrics, newest first."""
    lm = LifterMetricModel
    query = (
        select(
            RecordModel.name,
            RecordModel.age,
            RecordModel.date,
            RecordModel.meet_name,
            lm.successful_squat_attempts,
            lm.successful_bench_attempts,
            lm.successful_deadlift_attempts,
            lm.total_successful_attempts,
            lm.squat1_perc, lm.squat2_perc, lm.squat3_perc,
            lm.bench1_perc, lm.bench2_perc, lm.bench3_perc,
            lm.deadlift1_perc, lm.deadlift2_perc, lm.deadlift3_perc,
            lm.squat1_to2_kg, lm.squat2_to3_kg,
            lm.bench1_to2_kg, lm.bench2_to3_kg,
            lm.deadlift1_to2_kg, lm.deadlift2_to3_kg,
        )
        .join(lm, RecordModel.id == lm.id)
        .where(RecordModel.name == name)
        .order_by(RecordModel.date.desc())
    )
    result = await _with_timeout("querying lifter details", session.execute(query), timeout)
    details = [LifterDetails(*row) for row in result.all()]
    if not details:
        raise NoRowsError(f"No meets found for {name!r}")
    return details


async def get_lifter_performance(
    session: AsyncSession, name: str, timeout: float = DEFAULT_QUERY_TIMEOUT
) -> list[LifterPerformance]:
    """Best lifts and total per meet for ``name``, oldest first."""
    query = (
        select(
            RecordModel.date,
            RecordModel.best3_squat_kg,
            RecordModel.best3_bench_kg,
            RecordModel.best3_deadlift_kg,
            RecordModel.total_kg,
        )
        .where(RecordModel.name == name)
        .order_by(RecordModel.date)
    )
    result = await _with_timeout("getting lifter performance", session.execute(query), timeout)
    performances = [LifterPerformance(*row) for row in result.all()]
    if not performances:
        raise NoRowsError(f"No performances found for {name!r}")
    return performances


async def get_lifter_stats(
    session: AsyncSession, name: str, timeout: float = DEFAULT_QUERY_TIMEOUT
) -> LifterStats:
    """Average attempt counts and kg jumps across every meet for ``name``."""
    lm = LifterMetricModel
    query = (
        select(
            RecordModel.name,
            func.avg(lm.successful_squat_attempts),
            func.avg(lm.successful_bench_attempts),
            func.avg(lm.successful_deadlift_attempts),
            func.avg(lm.squat1_to2_kg),
            func.avg(lm.squat2_to3_kg),
            func.avg(lm.bench1_to2_kg),
            func.avg(lm.bench2_to3_kg),
            func.avg(lm.deadlift1_to2_kg),
            func.avg(lm.deadlift2_to3_kg),
        )
        .join(lm, RecordModel.id == lm.id)
        .where(RecordModel.name == name)
        .group_by(RecordModel.name)
    )
    result = await _with_timeout("getting lifter stats", session.execute(query), timeout)
    row = result.first()
    if row is None:
        raise NoRowsError(f"No stats found for {name!r}")
    return LifterStats(*row)


async def get_performance_trends(
    session: AsyncSession, timeout: float = DEFAULT_QUERY_TIMEOUT
) -> list[PerformanceTrendModel]:
    """Yearly averages, ordered by year then sex."""
    query = select(PerformanceTrendModel).order_by(
        PerformanceTrendModel.year, PerformanceTrendModel.sex
    )
    result = await _with_timeout("getting performance trends", session.execute(query), timeout)
    trends = list(result.scalars().all())
    if not trends:
        raise NoRowsError("No performance trends found")
    return trends


async def get_table_counts(session: AsyncSession, timeout: float = DEFAULT_QUERY_TIMEOUT) -> dict[str, int]:
    """Row count of every table, keyed by table name."""
    counts = {}
    for table_name in Base.metadata.tables:
        result = await _with_timeout(
            f"counting {table_name}",
            session.execute(text(f"SELECT COUNT(*) FROM {table_name}")),
            timeout,
        )
        counts[table_name] = result.scalar_one()
    return counts
