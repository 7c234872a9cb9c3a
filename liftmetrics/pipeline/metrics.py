"""Metrics pipeline: run every calculator inside one transaction.

Readers never see the output of part of the chain. Either every calculator
succeeds and the transaction commits, or the transaction rolls back and the
previous generation of derived tables stays in place.
"""

from __future__ import annotations

import asyncio
import logging
import time

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from liftmetrics.errors import OperationTimeoutError, StorageError
from liftmetrics.pipeline.calculators import DEFAULT_CALCULATORS, Calculator
from liftmetrics.pipeline.types import MetricsResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 300.0


class MetricsPipeline:
    """Ordered registry of calculators executed as a single transaction."""

    def __init__(
        self,
        calculators: list[Calculator] | None = None,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    ):
        """Initialize pipeline.

        Args:
            calculators: Calculators in execution order (default: full chain)
            timeout: Deadline in seconds for the whole transaction
        """
        if calculators is None:
            calculators = [calculator_cls() for calculator_cls in DEFAULT_CALCULATORS]
        self.calculators = calculators
        self.timeout = timeout

    def add_calculator(self, calculator: Calculator) -> None:
        """Append a calculator; it runs after every registered one."""
        self.calculators.append(calculator)

    async def _run_all(self, conn: AsyncConnection, result: MetricsResult) -> None:
        for calculator in self.calculators:
            logger.info(f"Running calculator: {calculator.name}")
            try:
                result.rows_by_calculator[calculator.name] = await calculator.execute(conn)
            except SQLAlchemyError as e:
                raise StorageError(f"Calculator {calculator.name} failed: {e}") from e

    async def _run_in_transaction(self, engine: AsyncEngine, result: MetricsResult) -> None:
        try:
            async with engine.begin() as conn:
                await self._run_all(conn, result)
        except SQLAlchemyError as e:
            raise StorageError(f"Metrics transaction failed: {e}") from e

    async def run(self, engine: AsyncEngine) -> MetricsResult:
        """Execute every calculator and commit once.

        Raises:
            StorageError: A calculator or the commit failed (rolled back)
            OperationTimeoutError: Deadline exceeded (rolled back)
        """
        start_time = time.time()
        result = MetricsResult()

        logger.info(f"Calculating metrics with {len(self.calculators)} calculators")
        try:
            await asyncio.wait_for(self._run_in_transaction(engine, result), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise OperationTimeoutError(f"Metrics pipeline exceeded {self.timeout}s") from e
        finally:
            result.duration_seconds = time.time() - start_time

        logger.info(f"Metrics committed in {result.duration_seconds:.1f}s")
        return result


async def update_all_metrics(engine: AsyncEngine, timeout: float | None = DEFAULT_TIMEOUT_SECONDS) -> MetricsResult:
    """Convenience function to run the default calculator chain.

    Args:
        engine: Database engine
        timeout: Deadline in seconds

    Returns:
        Per-calculator row counts
    """
    return await MetricsPipeline(timeout=timeout).run(engine)
