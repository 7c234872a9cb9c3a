"""Unit tests for the read-side queries and the lifter name export."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from liftmetrics.db.queries import (
    get_all_lifters,
    get_lifter_details,
    get_lifter_performance,
    get_lifter_stats,
    get_performance_trends,
    get_table_counts,
)
from liftmetrics.errors import NoRowsError, StorageError
from liftmetrics.lifters import read_lifter_names, write_lifter_names
from liftmetrics.pipeline.metrics import update_all_metrics


@pytest_asyncio.fixture
async def populated(engine, make_record, insert_records):
    await insert_records(
        make_record(name="Zoe", date="2021-04-01", total_kg=250.0),
        make_record(name="Anna", date="2022-02-01", total_kg=280.0, meet_name="Winter Cup"),
        make_record(
            name="Anna",
            date="2023-09-01",
            total_kg=300.0,
            meet_name="Nationals",
            squat1_kg=-100.0,
            squat2_kg=102.5,
            squat3_kg=0.0,
        ),
    )
    await update_all_metrics(engine)


class TestLifterQueries:
    @pytest.mark.asyncio
    async def test_all_lifters_sorted_and_distinct(self, engine, populated):
        async with AsyncSession(engine) as session:
            assert await get_all_lifters(session) == ["Anna", "Zoe"]

    @pytest.mark.asyncio
    async def test_details_newest_first(self, engine, populated):
        async with AsyncSession(engine) as session:
            details = await get_lifter_details(session, "Anna")

        assert [d.meet_name for d in details] == ["Nationals", "Winter Cup"]
        assert details[0].successful_squat_attempts == 1
        assert details[0].squat2_perc == pytest.approx(100.0)
        assert details[1].total_successful_attempts == 8

    @pytest.mark.asyncio
    async def test_performance_oldest_first(self, engine, populated):
        async with AsyncSession(engine) as session:
            performances = await get_lifter_performance(session, "Anna")

        assert [(p.date, p.total) for p in performances] == [("2022-02-01", 280.0), ("2023-09-01", 300.0)]

    @pytest.mark.asyncio
    async def test_stats(self, engine, populated):
        async with AsyncSession(engine) as session:
            stats = await get_lifter_stats(session, "Anna")

        assert stats.name == "Anna"
        assert stats.avg_squat_success == pytest.approx(2.0)
        assert stats.avg_bench_success == pytest.approx(2.0)
        # 5 kg and 2.5 kg jumps
        assert stats.avg_squat1_to2_kg == pytest.approx(3.75)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", [get_lifter_details, get_lifter_performance, get_lifter_stats])
    async def test_unknown_lifter(self, engine, populated, query):
        async with AsyncSession(engine) as session:
            with pytest.raises(NoRowsError):
                await query(session, "Nobody")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", [get_all_lifters, get_performance_trends])
    async def test_empty_store(self, engine, query):
        async with AsyncSession(engine) as session:
            with pytest.raises(NoRowsError):
                await query(session)

    @pytest.mark.asyncio
    async def test_trends_ordered_by_year(self, engine, populated):
        async with AsyncSession(engine) as session:
            trends = await get_performance_trends(session)

        assert [t.year for t in trends] == [2021, 2022, 2023]

    @pytest.mark.asyncio
    async def test_table_counts(self, engine, populated):
        async with AsyncSession(engine) as session:
            counts = await get_table_counts(session)

        assert counts["records"] == 3
        assert counts["lifter_metrics"] == 3
        assert counts["aggregated_metrics_bench"] == 0


class TestLifterNameExport:
    @pytest.mark.asyncio
    async def test_write_and_read(self, engine, populated, tmp_path: Path):
        output = tmp_path / "export" / "lifters.json"

        async with AsyncSession(engine) as session:
            written = await write_lifter_names(session, output)

        assert written == 2
        assert json.loads(output.read_text()) == ["Anna", "Zoe"]
        assert read_lifter_names(output) == ["Anna", "Zoe"]

    @pytest.mark.asyncio
    async def test_empty_store_writes_nothing(self, engine, tmp_path: Path):
        output = tmp_path / "lifters.json"

        async with AsyncSession(engine) as session:
            with pytest.raises(NoRowsError):
                await write_lifter_names(session, output)

        assert not output.exists()

    @pytest.mark.asyncio
    async def test_unwritable_output(self, engine, populated, tmp_path: Path):
        blocker = tmp_path / "export"
        blocker.write_text("not a directory")

        async with AsyncSession(engine) as session:
            with pytest.raises(StorageError):
                await write_lifter_names(session, blocker / "lifters.json")
