"""Pytest configuration and fixtures for LiftMetrics tests.

Provides an isolated environment, a throwaway SQLite store and factories for
OpenIPF rows in both database and CSV form.
"""

from __future__ import annotations

import io
from pathlib import Path
from uuid import uuid4

import pandas as pd
import pytest
import pytest_asyncio
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from liftmetrics.config import reset_config
from liftmetrics.db.models import Base, RecordModel
from liftmetrics.ingestion.records import COLUMN_MAPPING

RECORD_DEFAULTS = {
    "name": "Jane Doe",
    "sex": "F",
    "event": "SBD",
    "equipment": "Raw",
    "age": 28.0,
    "age_class": "24-34",
    "birth_year_class": "24-39",
    "division": "Open",
    "bodyweight_kg": 62.4,
    "weight_class_kg": "63",
    "squat1_kg": 100.0,
    "squat2_kg": 105.0,
    "squat3_kg": 110.0,
    "squat4_kg": 0.0,
    "best3_squat_kg": 110.0,
    "bench1_kg": 50.0,
    "bench2_kg": 55.0,
    "bench3_kg": -57.5,
    "bench4_kg": 0.0,
    "best3_bench_kg": 55.0,
    "deadlift1_kg": 120.0,
    "deadlift2_kg": 125.0,
    "deadlift3_kg": 130.0,
    "deadlift4_kg": 0.0,
    "best3_deadlift_kg": 130.0,
    "total_kg": 295.0,
    "place": "1",
    "dots": 320.5,
    "wilks": 318.2,
    "glossbrenner": 280.1,
    "goodlift": 70.3,
    "tested": "Yes",
    "country": "Norway",
    "state": "",
    "federation": "NSF",
    "parent_federation": "IPF",
    "date": "2023-05-01",
    "meet_country": "Norway",
    "meet_state": "",
    "meet_town": "Oslo",
    "meet_name": "Spring Open",
    "sanctioned": "Yes",
}


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch, tmp_path: Path):
    """Point configuration at a per-test data directory and database."""
    data_dir = tmp_path / "data"
    monkeypatch.setenv("LIFTMETRICS_DATA_DIR", str(data_dir))
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    reset_config()
    yield
    reset_config()


@pytest_asyncio.fixture()
async def engine(tmp_path: Path) -> AsyncEngine:
    """Create a file-backed SQLite store with every table."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def make_record():
    """Factory for complete ``records`` rows; keyword overrides win."""

    def _make(**overrides) -> dict:
        return {"id": uuid4(), **RECORD_DEFAULTS, **overrides}

    return _make


@pytest.fixture
def insert_records(engine: AsyncEngine):
    """Insert record dicts straight into the store."""

    async def _insert(*records: dict) -> None:
        async with engine.begin() as conn:
            await conn.execute(insert(RecordModel.__table__), list(records))

    return _insert


def _records_to_csv(records: list[dict]) -> str:
    columns = {column: header for header, column in COLUMN_MAPPING.items()}
    df = pd.DataFrame([{k: v for k, v in r.items() if k != "id"} for r in records])
    df = df.rename(columns=columns)[list(COLUMN_MAPPING)]
    buffer = io.StringIO()
    df.to_csv(buffer, index=False)
    return buffer.getvalue()


@pytest.fixture
def csv_text():
    """Render record dicts as OpenIPF bulk CSV text."""
    return _records_to_csv


@pytest.fixture
def write_csv():
    """Write record dicts as an OpenIPF bulk CSV file."""

    def _write(path: Path, records: list[dict]) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(_records_to_csv(records), encoding="utf-8")
        return path

    return _write
