"""Lifter name export.

The serving layer keeps an in-memory list of athlete names for search. It
loads that list from ``lifters.json``, which is rewritten after every
successful ingestion run.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession

from liftmetrics.db.queries import get_all_lifters
from liftmetrics.errors import StorageError

logger = logging.getLogger(__name__)


async def write_lifter_names(session: AsyncSession, output_path: Path) -> int:
    """Write every distinct athlete name to ``output_path`` as a JSON array.

    Returns:
        Number of names written

    Raises:
        NoRowsError: The store holds no records
        StorageError: The file could not be written
    """
    names = await get_all_lifters(session)

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json.dumps(names, ensure_ascii=False), encoding="utf-8")
    except OSError as e:
        raise StorageError(f"Failed to write lifter names to {output_path}: {e}") from e

    logger.info(f"Wrote {len(names)} lifter names to {output_path}")
    return len(names)


def read_lifter_names(path: Path) -> list[str]:
    """Load the name list written by ``write_lifter_names``."""
    return json.loads(path.read_text(encoding="utf-8"))
