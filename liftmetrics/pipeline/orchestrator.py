"""Ingestion orchestrator - revision gate through lifter name export.

Stages run strictly in order on a single task:

1. Revision check (skipped with ``force``)
2. Download archive
3. Extract CSV
4. Reload ``records``
5. Recompute derived tables
6. Export lifter names

There are no retries. A failing stage is recorded on the ``RunResult``
attached to the raised error, logged, and the error propagates.
"""

from __future__ import annotations

import time
from pathlib import Path

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from liftmetrics.config import AppConfig
from liftmetrics.core.logging import get_logger
from liftmetrics.db.connection import create_engine_for, get_session, init_db
from liftmetrics.errors import LiftMetricsError, StorageError
from liftmetrics.ingestion.archive import extract_csv
from liftmetrics.ingestion.downloader import download_file
from liftmetrics.ingestion.records import load_records
from liftmetrics.ingestion.revision import check_for_update, revision_from_filename
from liftmetrics.lifters import write_lifter_names
from liftmetrics.pipeline.metrics import MetricsPipeline
from liftmetrics.pipeline.types import RunResult, RunStatus, Stage

logger = get_logger(__name__)


class IngestionOrchestrator:
    """Runs one ingestion pass against an explicit configuration.

    The engine and HTTP client may be injected; whatever the orchestrator
    creates itself it also closes.
    """

    def __init__(
        self,
        config: AppConfig,
        engine: AsyncEngine | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize orchestrator.

        Args:
            config: Application configuration (URLs, paths, deadlines)
            engine: Store engine (default: created from ``config.db``)
            client: HTTP client (default: created with ``config.timeouts``)
        """
        self.config = config
        self.engine = engine
        self.client = client

    async def run(self, force: bool = False) -> RunResult:
        """Execute the pipeline.

        Args:
            force: Skip the revision check and always download

        Returns:
            RunResult with status SUCCESS or SKIPPED

        Raises:
            LiftMetricsError: Any stage failure; ``error.run_result`` holds
                the partially filled result
        """
        start_time = time.time()
        result = RunResult(status=RunStatus.SUCCESS)

        owns_engine = self.engine is None
        owns_client = self.client is None
        engine = self.engine or create_engine_for(self.config.db.url, echo=self.config.db.echo)
        client = self.client or httpx.AsyncClient(
            timeout=self.config.timeouts.http_seconds, follow_redirects=True
        )

        log = logger.bind(data_dir=str(self.config.paths.data_dir), force=force)
        log.info("ingestion_started")

        try:
            await self._run_stages(engine, client, result, force, log)
        finally:
            result.duration_seconds = time.time() - start_time
            if owns_client:
                await client.aclose()
            if owns_engine:
                await engine.dispose()

        log.info(
            "ingestion_finished",
            status=result.status.value,
            records=result.records_loaded,
            duration=round(result.duration_seconds, 1),
        )
        return result

    async def _run_stages(
        self,
        engine: AsyncEngine,
        client: httpx.AsyncClient,
        result: RunResult,
        force: bool,
        log,
    ) -> None:
        config = self.config
        stage = Stage.REVISION_CHECK

        try:
            if not force:
                check = await check_for_update(
                    config.paths.data_dir,
                    config.source.revision_url,
                    client,
                    marker=config.source.revision_marker,
                    prefix=config.source.dataset_prefix,
                    timeout=config.timeouts.http_seconds,
                )
                result.local_revision = check.local_revision
                result.remote_revision = check.remote_revision
                result.stages_completed.append(stage)

                if not check.needs_update:
                    result.status = RunStatus.SKIPPED
                    result.message = f"Up to date: {check.reason}"
                    log.info("ingestion_skipped", reason=check.reason)
                    return

            stage = Stage.DOWNLOAD
            download = await download_file(
                client,
                config.source.data_url,
                config.paths.archive_path,
                timeout=config.timeouts.download_seconds,
            )
            result.bytes_downloaded = download.bytes_written
            result.stages_completed.append(stage)

            stage = Stage.EXTRACT
            csv_path = extract_csv(config.paths.archive_path, config.paths.data_dir)
            result.csv_path = str(csv_path)
            result.stages_completed.append(stage)

            stage = Stage.LOAD
            await _ensure_schema(engine)
            load = await load_records(engine, csv_path, timeout=config.timeouts.load_seconds)
            result.records_loaded = load.rows_inserted
            result.stages_completed.append(stage)

            stage = Stage.METRICS
            pipeline = MetricsPipeline(timeout=config.timeouts.metrics_seconds)
            result.metrics = await pipeline.run(engine)
            result.stages_completed.append(stage)

            stage = Stage.EXPORT
            async with get_session(engine) as session:
                await write_lifter_names(session, config.paths.lifters_path)
            result.stages_completed.append(stage)

        except LiftMetricsError as e:
            result.status = RunStatus.FAILED
            result.failed_stage = stage
            result.message = f"{stage.value} failed: {e}"
            result.error_details = {
                "error_type": type(e).__name__,
                "error_message": str(e),
            }
            e.run_result = result
            log.error("ingestion_failed", stage=stage.value, error=str(e), exc_info=True)
            raise

        result.message = _describe_success(csv_path, result)


async def _ensure_schema(engine: AsyncEngine) -> None:
    try:
        await init_db(engine)
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to create tables: {e}") from e


def _describe_success(csv_path: Path, result: RunResult) -> str:
    try:
        revision = revision_from_filename(csv_path)
    except LiftMetricsError:
        revision = "unknown"
    return f"Loaded {result.records_loaded} records from revision {revision}"

