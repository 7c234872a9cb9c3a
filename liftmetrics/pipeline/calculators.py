"""Derived-metric calculators.

Each calculator owns one derived table (or one group of columns) and knows
how to rebuild it from ``records`` inside an already-open transaction. All
writes are upserts on the table's natural key, preceded by a prune of keys
the current record generation no longer produces, so running a calculator
twice against the same raw data leaves the table unchanged.

Order matters: ``LiftDifferences`` updates rows created by
``SuccessfulAttempts`` and ``AggregatedMetrics`` reads both.
"""

from __future__ import annotations

import logging

from sqlalchemy import TextClause, text
from sqlalchemy.ext.asyncio import AsyncConnection

logger = logging.getLogger(__name__)

LIFTS = ("squat", "bench", "deadlift")
ATTEMPTS = (1, 2, 3)

_SEP = ",\n            "


def _upsert_set(columns: list[str]) -> str:
    return _SEP.join(f"{column} = excluded.{column}" for column in columns)


def _success_count(lift: str) -> str:
    return " + ".join(f"(CASE WHEN {lift}{n}_kg > 0 THEN 1 ELSE 0 END)" for n in ATTEMPTS)


def _heaviest(lift: str) -> str:
    return f"MAX(ABS(r.{lift}1_kg), ABS(r.{lift}2_kg), ABS(r.{lift}3_kg))"


def _percentage(lift: str, attempt: int) -> str:
    heaviest = _heaviest(lift)
    return f"CASE WHEN {heaviest} = 0 THEN 0 ELSE ABS(r.{lift}{attempt}_kg) / {heaviest} * 100 END"


def _positive_avg(expression: str) -> str:
    """Average of ``expression`` over rows where it is strictly positive."""
    return f"AVG(CASE WHEN {expression} > 0 THEN {expression} END)"


def _prune_missing_athletes(table: str, event: str) -> TextClause:
    return text(f"""
        DELETE FROM {table}
        WHERE NOT EXISTS (
            SELECT 1 FROM records r
            WHERE r.event = '{event}'
              AND r.name = {table}.name
              AND r.equipment = {table}.equipment
        )
    """)


def _aggregate_upsert(table: str, event: str, columns: list[str], values: list[str]) -> TextClause:
    return text(f"""
        INSERT INTO {table} (
            name, equipment,
            {_SEP.join(columns)}
        )
        SELECT
            lm.name, lm.equipment,
            {_SEP.join(values)}
        FROM lifter_metrics lm
        JOIN records r
          ON lm.id = r.id AND lm.date = r.date AND lm.equipment = r.equipment
        WHERE r.event = '{event}'
        GROUP BY lm.name, lm.equipment
        ON CONFLICT (name, equipment) DO UPDATE SET
            {_upsert_set(columns)}
    """)


class Calculator:
    """One step of the metrics pipeline.

    Subclasses list their SQL in ``statements``; they run in order against
    the pipeline's transaction.
    """

    name: str = "calculator"
    statements: tuple[TextClause, ...] = ()

    async def execute(self, conn: AsyncConnection) -> int:
        """Run this calculator's statements.

        Returns:
            Rows affected by the last statement (the upsert)
        """
        affected = 0
        for statement in self.statements:
            result = await conn.execute(statement)
            affected = result.rowcount or 0
        logger.debug(f"{self.name}: {affected} rows")
        return affected


# --- MaxLifts -------------------------------------------------------------

_MAX_LIFT_COLUMNS = [
    "name", "date", "meet_name", "equipment", "event",
    "best3_squat_kg", "best3_bench_kg", "best3_deadlift_kg", "total_kg",
]


class MaxLifts(Calculator):
    """Denormalize best lifts for SBD and bench-only events into ``max_lifts``."""

    name = "max_lifts"
    statements = (
        text("""
        DELETE FROM max_lifts
        WHERE id NOT IN (SELECT id FROM records WHERE event IN ('SBD', 'B'))
        """),
        text(f"""
        INSERT INTO max_lifts (
            id, name, date, meet_name, equipment, event,
            best3_squat_kg, best3_bench_kg, best3_deadlift_kg, total_kg
        )
        SELECT
            id, name, date, meet_name, equipment, event,
            CASE WHEN event = 'SBD' THEN best3_squat_kg END,
            best3_bench_kg,
            CASE WHEN event = 'SBD' THEN best3_deadlift_kg END,
            total_kg
        FROM records
        WHERE event IN ('SBD', 'B')
        ON CONFLICT (id) DO UPDATE SET
            {_upsert_set(_MAX_LIFT_COLUMNS)}
        """),
    )


# --- SuccessfulAttempts ---------------------------------------------------

_SUCCESS_COLUMNS = [
    "name",
    "successful_squat_attempts",
    "successful_bench_attempts",
    "successful_deadlift_attempts",
    "total_successful_attempts",
]
_TOTAL_SUCCESS = " +\n            ".join(_success_count(lift) for lift in LIFTS)


class SuccessfulAttempts(Calculator):
    """Count attempts with positive weight per lift and overall."""

    name = "successful_attempts"
    statements = (
        text("""
        DELETE FROM lifter_metrics
        WHERE NOT EXISTS (
            SELECT 1 FROM records r
            WHERE r.id = lifter_metrics.id
              AND r.date = lifter_metrics.date
              AND r.equipment = lifter_metrics.equipment
        )
        """),
        text(f"""
        INSERT INTO lifter_metrics (
            id, name, date, equipment,
            successful_squat_attempts,
            successful_bench_attempts,
            successful_deadlift_attempts,
            total_successful_attempts
        )
        SELECT
            id, name, date, equipment,
            {_success_count('squat')},
            {_success_count('bench')},
            {_success_count('deadlift')},
            {_TOTAL_SUCCESS}
        FROM records
        WHERE 1
        ON CONFLICT (id, date, equipment) DO UPDATE SET
            {_upsert_set(_SUCCESS_COLUMNS)}
        """),
    )


# --- LiftDifferences ------------------------------------------------------

_DIFFERENCE_ASSIGNMENTS = [
    f"{lift}{n}_perc = {_percentage(lift, n)}" for lift in LIFTS for n in ATTEMPTS
] + [
    f"{lift}{n}_to{n + 1}_kg = ABS(r.{lift}{n + 1}_kg) - ABS(r.{lift}{n}_kg)"
    for lift in LIFTS
    for n in (1, 2)
]


class LiftDifferences(Calculator):
    """Attempt percentages of the heaviest attempt, and kg jumps between attempts."""

    name = "lift_differences"
    statements = (
        text(f"""
        UPDATE lifter_metrics
        SET
            {_SEP.join(_DIFFERENCE_ASSIGNMENTS)}
        FROM records r
        WHERE lifter_metrics.id = r.id
          AND lifter_metrics.date = r.date
          AND lifter_metrics.equipment = r.equipment
        """),
    )


# --- AggregatedMetrics ----------------------------------------------------

_SBD_COLUMNS = (
    [f"avg_successful_{lift}_attempts" for lift in LIFTS]
    + ["avg_total_successful_attempts"]
    + [f"avg_{lift}{n}_perc" for lift in LIFTS for n in ATTEMPTS]
    + [f"avg_{lift}{n}_to{n + 1}_kg" for lift in LIFTS for n in (1, 2)]
)
_SBD_VALUES = (
    [f"AVG(lm.successful_{lift}_attempts)" for lift in LIFTS]
    + ["AVG(lm.total_successful_attempts)"]
    + [_positive_avg(f"lm.{lift}{n}_perc") for lift in LIFTS for n in ATTEMPTS]
    + [_positive_avg(f"ABS(lm.{lift}{n}_to{n + 1}_kg)") for lift in LIFTS for n in (1, 2)]
)
_BENCH_COLUMNS = (
    ["avg_successful_bench_attempts"]
    + [f"avg_bench{n}_perc" for n in ATTEMPTS]
    + [f"avg_bench{n}_to{n + 1}_kg" for n in (1, 2)]
)
_BENCH_VALUES = (
    ["AVG(lm.successful_bench_attempts)"]
    + [_positive_avg(f"lm.bench{n}_perc") for n in ATTEMPTS]
    + [_positive_avg(f"ABS(lm.bench{n}_to{n + 1}_kg)") for n in (1, 2)]
)


class AggregatedMetrics(Calculator):
    """Per-athlete lifetime averages, separately for SBD and bench-only meets.

    Attempt counts are averaged over every meet. Percentages and absolute kg
    jumps are averaged over positive values only, so failed or absent lifts
    (and repeated identical attempt weights) are left out of the average.
    """

    name = "aggregated_metrics"
    statements = (
        _prune_missing_athletes("aggregated_metrics_sbd", "SBD"),
        _aggregate_upsert("aggregated_metrics_sbd", "SBD", _SBD_COLUMNS, _SBD_VALUES),
        _prune_missing_athletes("aggregated_metrics_bench", "B"),
        _aggregate_upsert("aggregated_metrics_bench", "B", _BENCH_COLUMNS, _BENCH_VALUES),
    )


# --- Summary tables -------------------------------------------------------

_AVERAGE_COLUMNS = ["avg_squat", "avg_bench", "avg_deadlift", "avg_total"]


class WeightClassDistribution(Calculator):
    """Distinct athletes per (weight class, sex)."""

    name = "weight_class_distribution"
    statements = (
        text("""
        DELETE FROM weight_class_distribution
        WHERE NOT EXISTS (
            SELECT 1 FROM records r
            WHERE r.weight_class_kg = weight_class_distribution.weight_class
              AND r.sex = weight_class_distribution.sex
        )
        """),
        text("""
        INSERT INTO weight_class_distribution (weight_class, sex, count)
        SELECT weight_class_kg, sex, COUNT(DISTINCT name)
        FROM records
        WHERE 1
        GROUP BY weight_class_kg, sex
        ON CONFLICT (weight_class, sex) DO UPDATE SET
            count = excluded.count
        """),
    )


class AgeGroupPerformance(Calculator):
    """Average best lifts and total per (age class, sex); empty age class skipped."""

    name = "age_group_performance"
    statements = (
        text("""
        DELETE FROM age_group_performance
        WHERE NOT EXISTS (
            SELECT 1 FROM records r
            WHERE r.age_class != ''
              AND r.age_class = age_group_performance.age_class
              AND r.sex = age_group_performance.sex
        )
        """),
        text(f"""
        INSERT INTO age_group_performance (
            age_class, sex, avg_squat, avg_bench, avg_deadlift, avg_total
        )
        SELECT
            age_class,
            sex,
            AVG(best3_squat_kg),
            AVG(best3_bench_kg),
            AVG(best3_deadlift_kg),
            AVG(total_kg)
        FROM records
        WHERE age_class != ''
        GROUP BY age_class, sex
        ON CONFLICT (age_class, sex) DO UPDATE SET
            {_upsert_set(_AVERAGE_COLUMNS)}
        """),
    )


class PerformanceTrends(Calculator):
    """Average best lifts and total per (meet year, sex)."""

    name = "performance_trends"
    statements = (
        text("""
        DELETE FROM performance_trends
        WHERE NOT EXISTS (
            SELECT 1 FROM records r
            WHERE CAST(strftime('%Y', r.date) AS INTEGER) = performance_trends.year
              AND r.sex = performance_trends.sex
        )
        """),
        text(f"""
        INSERT INTO performance_trends (
            year, sex, avg_squat, avg_bench, avg_deadlift, avg_total
        )
        SELECT
            CAST(strftime('%Y', date) AS INTEGER) AS meet_year,
            sex,
            AVG(best3_squat_kg),
            AVG(best3_bench_kg),
            AVG(best3_deadlift_kg),
            AVG(total_kg)
        FROM records
        WHERE strftime('%Y', date) IS NOT NULL
        GROUP BY meet_year, sex
        ON CONFLICT (year, sex) DO UPDATE SET
            {_upsert_set(_AVERAGE_COLUMNS)}
        """),
    )


DEFAULT_CALCULATORS: tuple[type[Calculator], ...] = (
    MaxLifts,
    SuccessfulAttempts,
    LiftDifferences,
    AggregatedMetrics,
    WeightClassDistribution,
    AgeGroupPerformance,
    PerformanceTrends,
)
