"""End-to-end tests for the ingestion orchestrator.

The OpenIPF host is replaced by an ``httpx.MockTransport`` serving a revision
page and a zip archive built in memory.
"""

from __future__ import annotations

import io
import json
import zipfile
from pathlib import Path

import httpx
import pytest
from sqlalchemy import func, select

from liftmetrics.config import AppConfig, PathsConfig, SourceConfig
from liftmetrics.db.models import LifterMetricModel, RecordModel
from liftmetrics.errors import NetworkError, RevisionNotFoundError, StorageError
from liftmetrics.pipeline import orchestrator
from liftmetrics.pipeline.orchestrator import IngestionOrchestrator
from liftmetrics.pipeline.types import RunStatus, Stage

DATA_URL = "https://openipf.test/files/openipf-latest.zip"
REVISION_URL = "https://openipf.test/bulk-csv.html"


class FakeOpenIPF:
    """Serves a revision page and an archive; records every request."""

    def __init__(self, revision: str, csv_text: str, archive_status: int = 200, csv_suffix: str = ".csv"):
        self.revision = revision
        self.csv_suffix = csv_suffix
        self.csv_text = csv_text
        self.archive_status = archive_status
        self.page = f"<ul><li>Updated: 2024-06-01</li><li>Revision: {revision}.</li></ul>"
        self.requests: list[str] = []

    def archive_bytes(self) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            folder = f"openipf-2024-06-01-{self.revision}"
            archive.writestr(f"{folder}/README.txt", "OpenIPF data")
            archive.writestr(f"{folder}/{folder}{self.csv_suffix}", self.csv_text)
        return buffer.getvalue()

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if url == REVISION_URL:
            return httpx.Response(200, text=self.page)
        if url == DATA_URL:
            if self.archive_status != 200:
                return httpx.Response(self.archive_status)
            return httpx.Response(200, content=self.archive_bytes())
        return httpx.Response(404)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        source=SourceConfig(data_url=DATA_URL, revision_url=REVISION_URL),
        paths=PathsConfig(data_dir=tmp_path / "data"),
    )


@pytest.fixture
def dataset(make_record, csv_text) -> str:
    return csv_text([
        make_record(name="Anna"),
        make_record(name="Anna", date="2024-03-01", squat1_kg=-100.0, squat2_kg=102.5, squat3_kg=0.0),
        make_record(name="Bo", sex="M", event="B", weight_class_kg="93"),
    ])


async def _count(engine, model) -> int:
    async with engine.connect() as conn:
        return (await conn.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.integration
class TestIngestionOrchestrator:
    @pytest.mark.asyncio
    async def test_first_run_without_local_csv(self, engine, config, dataset):
        server = FakeOpenIPF("abc123", dataset)

        async with server.client() as client:
            result = await IngestionOrchestrator(config, engine=engine, client=client).run()

        assert result.status == RunStatus.SUCCESS
        assert server.requests == [DATA_URL]
        assert result.stages_completed == [
            Stage.REVISION_CHECK, Stage.DOWNLOAD, Stage.EXTRACT, Stage.LOAD, Stage.METRICS, Stage.EXPORT,
        ]
        assert result.local_revision is None
        assert result.records_loaded == 3
        assert result.started_at.tzinfo is not None
        assert "abc123" in result.message

        data_dir = config.paths.data_dir
        assert (data_dir / "openipf-2024-06-01-abc123.csv").exists()
        assert json.loads(config.paths.lifters_path.read_text()) == ["Anna", "Bo"]
        assert await _count(engine, RecordModel) == 3
        assert await _count(engine, LifterMetricModel) == 3
        assert result.metrics.calculators_run[0] == "max_lifts"

    @pytest.mark.asyncio
    async def test_unchanged_revision_skips_download(self, engine, config, dataset):
        server = FakeOpenIPF("abc123", dataset)
        async with server.client() as client:
            await IngestionOrchestrator(config, engine=engine, client=client).run()

            server.requests.clear()
            result = await IngestionOrchestrator(config, engine=engine, client=client).run()

        assert result.status == RunStatus.SKIPPED
        assert result.success
        assert server.requests == [REVISION_URL]
        assert result.local_revision == result.remote_revision == "abc123"

    @pytest.mark.asyncio
    async def test_uppercase_csv_member_is_recognised_on_next_run(self, engine, config, dataset):
        server = FakeOpenIPF("abc123", dataset, csv_suffix=".CSV")
        async with server.client() as client:
            first = await IngestionOrchestrator(config, engine=engine, client=client).run()

            server.requests.clear()
            second = await IngestionOrchestrator(config, engine=engine, client=client).run()

        assert first.status == RunStatus.SUCCESS
        assert "abc123" in first.message
        assert second.status == RunStatus.SKIPPED
        assert server.requests == [REVISION_URL]
        assert second.local_revision == "abc123"

    @pytest.mark.asyncio
    async def test_load_runs_under_configured_deadline(self, engine, config, dataset, monkeypatch):
        config.timeouts.load_seconds = 42.0
        calls = []
        real_load_records = orchestrator.load_records

        async def recording_load_records(*args, **kwargs):
            calls.append(kwargs)
            return await real_load_records(*args, **kwargs)

        monkeypatch.setattr(orchestrator, "load_records", recording_load_records)

        async with FakeOpenIPF("abc123", dataset).client() as client:
            await IngestionOrchestrator(config, engine=engine, client=client).run()

        assert calls == [{"timeout": 42.0}]

    @pytest.mark.asyncio
    async def test_unusable_data_dir_fails_with_typed_error(self, engine, tmp_path, dataset):
        blocker = tmp_path / "blocked"
        blocker.write_text("not a directory")
        config = AppConfig(
            source=SourceConfig(data_url=DATA_URL, revision_url=REVISION_URL),
            paths=PathsConfig(data_dir=blocker),
        )
        server = FakeOpenIPF("abc123", dataset)

        async with server.client() as client:
            with pytest.raises(StorageError) as exc_info:
                await IngestionOrchestrator(config, engine=engine, client=client).run(force=True)

        assert server.requests == []
        run_result = exc_info.value.run_result
        assert run_result.status == RunStatus.FAILED
        assert run_result.failed_stage == Stage.DOWNLOAD
        assert run_result.error_details["error_type"] == "StorageError"

    @pytest.mark.asyncio
    async def test_new_revision_replaces_dataset(self, engine, config, dataset, make_record, csv_text):
        async with FakeOpenIPF("abc123", dataset).client() as client:
            await IngestionOrchestrator(config, engine=engine, client=client).run()

        server = FakeOpenIPF("def456", csv_text([make_record(name="Cleo")]))
        async with server.client() as client:
            result = await IngestionOrchestrator(config, engine=engine, client=client).run()

        assert result.status == RunStatus.SUCCESS
        assert server.requests == [REVISION_URL, DATA_URL]
        assert result.local_revision == "abc123"
        assert result.remote_revision == "def456"

        csv_files = sorted(p.name for p in config.paths.data_dir.glob("*.csv"))
        assert csv_files == ["openipf-2024-06-01-def456.csv"]
        assert await _count(engine, RecordModel) == 1
        assert await _count(engine, LifterMetricModel) == 1
        assert json.loads(config.paths.lifters_path.read_text()) == ["Cleo"]

    @pytest.mark.asyncio
    async def test_force_bypasses_revision_check(self, engine, config, dataset):
        server = FakeOpenIPF("abc123", dataset)
        async with server.client() as client:
            await IngestionOrchestrator(config, engine=engine, client=client).run()
            server.requests.clear()
            result = await IngestionOrchestrator(config, engine=engine, client=client).run(force=True)

        assert result.status == RunStatus.SUCCESS
        assert server.requests == [DATA_URL]

    @pytest.mark.asyncio
    async def test_missing_revision_marker_fails_without_download(self, engine, config, dataset):
        async with FakeOpenIPF("abc123", dataset).client() as client:
            await IngestionOrchestrator(config, engine=engine, client=client).run()

        server = FakeOpenIPF("abc123", dataset)
        server.page = "<ul><li>Site maintenance</li></ul>"
        async with server.client() as client:
            with pytest.raises(RevisionNotFoundError) as exc_info:
                await IngestionOrchestrator(config, engine=engine, client=client).run()

        assert server.requests == [REVISION_URL]
        run_result = exc_info.value.run_result
        assert run_result.status == RunStatus.FAILED
        assert run_result.failed_stage == Stage.REVISION_CHECK
        assert run_result.error_details["error_type"] == "RevisionNotFoundError"
        assert await _count(engine, RecordModel) == 3

    @pytest.mark.asyncio
    async def test_archive_error_status(self, engine, config, dataset):
        server = FakeOpenIPF("abc123", dataset, archive_status=500)

        async with server.client() as client:
            with pytest.raises(NetworkError) as exc_info:
                await IngestionOrchestrator(config, engine=engine, client=client).run()

        assert exc_info.value.status_code == 500
        assert exc_info.value.run_result.failed_stage == Stage.DOWNLOAD
        assert not config.paths.archive_path.exists()
