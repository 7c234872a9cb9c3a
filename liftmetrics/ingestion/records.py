"""Parse the OpenIPF bulk CSV and load it into the ``records`` table.

The file is read header-first: every mapped column must be present, numeric
columns must hold floats, and each row receives a freshly generated UUID.
Loading replaces the whole table inside a single transaction.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from uuid import uuid4

import pandas as pd
from sqlalchemy import delete, insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from liftmetrics.db.models import RecordModel
from liftmetrics.errors import OperationTimeoutError, ParseError, StorageError

logger = logging.getLogger(__name__)

# CSV header -> records column
COLUMN_MAPPING: dict[str, str] = {
    "Name": "name",
    "Sex": "sex",
    "Event": "event",
    "Equipment": "equipment",
    "Age": "age",
    "AgeClass": "age_class",
    "BirthYearClass": "birth_year_class",
    "Division": "division",
    "BodyweightKg": "bodyweight_kg",
    "WeightClassKg": "weight_class_kg",
    "Squat1Kg": "squat1_kg",
    "Squat2Kg": "squat2_kg",
    "Squat3Kg": "squat3_kg",
    "Squat4Kg": "squat4_kg",
    "Best3SquatKg": "best3_squat_kg",
    "Bench1Kg": "bench1_kg",
    "Bench2Kg": "bench2_kg",
    "Bench3Kg": "bench3_kg",
    "Bench4Kg": "bench4_kg",
    "Best3BenchKg": "best3_bench_kg",
    "Deadlift1Kg": "deadlift1_kg",
    "Deadlift2Kg": "deadlift2_kg",
    "Deadlift3Kg": "deadlift3_kg",
    "Deadlift4Kg": "deadlift4_kg",
    "Best3DeadliftKg": "best3_deadlift_kg",
    "TotalKg": "total_kg",
    "Place": "place",
    "Dots": "dots",
    "Wilks": "wilks",
    "Glossbrenner": "glossbrenner",
    "Goodlift": "goodlift",
    "Tested": "tested",
    "Country": "country",
    "State": "state",
    "Federation": "federation",
    "ParentFederation": "parent_federation",
    "Date": "date",
    "MeetCountry": "meet_country",
    "MeetState": "meet_state",
    "MeetTown": "meet_town",
    "MeetName": "meet_name",
    "Sanctioned": "sanctioned",
}

# Empty cell means "not attempted" and is stored as 0.0
ATTEMPT_COLUMNS = frozenset({
    "Squat1Kg", "Squat2Kg", "Squat3Kg", "Squat4Kg", "Best3SquatKg",
    "Bench1Kg", "Bench2Kg", "Bench3Kg", "Bench4Kg", "Best3BenchKg",
    "Deadlift1Kg", "Deadlift2Kg", "Deadlift3Kg", "Deadlift4Kg", "Best3DeadliftKg",
    "TotalKg",
})

# Empty cell means "unknown" and is stored as NULL
OPTIONAL_NUMERIC_COLUMNS = frozenset({
    "Age", "BodyweightKg", "Dots", "Wilks", "Glossbrenner", "Goodlift",
})

INSERT_CHUNK_SIZE = 5000


@dataclass
class LoadResult:
    """Outcome of a records reload."""

    source_file: Path
    rows_inserted: int
    rows_replaced: int = 0


def _parse_numeric(df: pd.DataFrame, column: str, empty_as_zero: bool) -> pd.Series:
    raw = df[column].str.strip()
    blank = raw == ""
    numeric = pd.to_numeric(raw.where(~blank), errors="coerce")

    invalid = numeric.isna() & ~blank
    if invalid.any():
        row = int(invalid.idxmax())
        # +2: header line plus 1-based numbering
        raise ParseError(
            f"Column {column!r} line {row + 2}: cannot parse {df[column].iloc[row]!r} as float"
        )

    if empty_as_zero:
        return numeric.fillna(0.0).astype(float)
    return numeric.astype(object).where(numeric.notna(), None)


def parse_records(csv_path: Path) -> list[dict]:
    """Read the CSV into row dicts keyed by ``records`` column names.

    Raises:
        ParseError: Unreadable file, missing columns or non-numeric values
    """
    try:
        df = pd.read_csv(csv_path, dtype=str, keep_default_na=False, na_filter=False)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise ParseError(f"Failed to read CSV file {csv_path}: {e}") from e

    missing = [column for column in COLUMN_MAPPING if column not in df.columns]
    if missing:
        raise ParseError(f"Missing required columns: {missing}")

    df = df[list(COLUMN_MAPPING)].copy()

    for column in ATTEMPT_COLUMNS:
        df[column] = _parse_numeric(df, column, empty_as_zero=True)
    for column in OPTIONAL_NUMERIC_COLUMNS:
        df[column] = _parse_numeric(df, column, empty_as_zero=False)

    df = df.rename(columns=COLUMN_MAPPING)
    rows = df.to_dict(orient="records")

    for row in rows:
        row["id"] = uuid4()

    logger.info(f"Parsed {len(rows)} rows from {csv_path}")
    return rows


async def _replace_records(engine: AsyncEngine, rows: list[dict], chunk_size: int) -> int:
    async with engine.begin() as conn:
        deleted = await conn.execute(delete(RecordModel.__table__))
        for start in range(0, len(rows), chunk_size):
            await conn.execute(insert(RecordModel.__table__), rows[start:start + chunk_size])
            logger.debug(f"Inserted {min(start + chunk_size, len(rows))}/{len(rows)} records")
    return deleted.rowcount or 0


async def load_records(
    engine: AsyncEngine,
    csv_path: Path,
    timeout: float | None = None,
    chunk_size: int = INSERT_CHUNK_SIZE,
) -> LoadResult:
    """Replace the ``records`` table with the contents of ``csv_path``.

    The delete and every insert share one transaction; any failure rolls back
    and the previous generation of rows stays in place.

    Raises:
        ParseError: CSV does not match the expected schema
        StorageError: Transaction failed
        OperationTimeoutError: Load exceeded ``timeout`` seconds
    """
    rows = parse_records(csv_path)

    logger.info(f"Loading {len(rows)} records into the database. This might take a while!")
    try:
        replaced = await asyncio.wait_for(_replace_records(engine, rows, chunk_size), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise OperationTimeoutError(f"Loading records exceeded {timeout}s") from e
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to populate records: {e}") from e

    logger.info(f"Loaded {len(rows)} records (replaced {replaced})")
    return LoadResult(source_file=csv_path, rows_inserted=len(rows), rows_replaced=replaced)
