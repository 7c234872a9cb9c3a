"""Revision gate: decide whether the local dataset is stale.

The last known revision is not stored anywhere except in the extracted CSV's
filename (``openipf-2024-06-01-abc123.csv`` carries revision ``abc123``). The
remote revision is scraped from the bulk-csv page, which lists it as
``<li>Revision: abc123.</li>``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

import httpx
from bs4 import BeautifulSoup

from liftmetrics.errors import NetworkError, OperationTimeoutError, RevisionNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_MARKER = "Revision:"


@dataclass
class RevisionCheck:
    """Outcome of a revision comparison."""

    needs_update: bool
    local_csv: Path | None = None
    local_revision: str | None = None
    remote_revision: str | None = None

    @property
    def reason(self) -> str:
        if self.local_csv is None:
            return "no local CSV"
        if self.needs_update:
            return f"revision changed {self.local_revision} -> {self.remote_revision}"
        return f"revision {self.local_revision} is current"


def find_local_csv(data_dir: Path, prefix: str = "openipf") -> Path | None:
    """Return the cached dataset CSV in ``data_dir``, if any."""
    if not data_dir.is_dir():
        return None

    for candidate in sorted(data_dir.iterdir()):
        if candidate.is_file() and candidate.name.startswith(prefix) and candidate.suffix.lower() == ".csv":
            return candidate
    return None


def parse_revision_page(html: str, marker: str = DEFAULT_MARKER) -> str:
    """Extract the revision token from the bulk-csv page.

    Raises:
        RevisionNotFoundError: If no list item starts with ``marker``
    """
    soup = BeautifulSoup(html, "html.parser")

    for item in soup.find_all("li"):
        text = item.get_text().strip()
        if not text.startswith(marker):
            continue
        revision = text[len(marker):].strip().removesuffix(".").strip()
        if revision:
            return revision

    raise RevisionNotFoundError(f"No list item starting with {marker!r} on revision page")


def revision_from_filename(csv_path: Path) -> str:
    """Extract the revision embedded as the last hyphen-delimited segment.

    Raises:
        RevisionNotFoundError: If the filename carries no revision segment
    """
    parts = csv_path.stem.split("-")
    if len(parts) > 1:
        revision = parts[-1]
        if revision:
            return revision

    raise RevisionNotFoundError(f"No revision in CSV filename {csv_path.name!r}")


async def fetch_remote_revision(
    client: httpx.AsyncClient,
    url: str,
    marker: str = DEFAULT_MARKER,
    timeout: float = 30.0,
) -> str:
    """Fetch the revision page and return the current revision token.

    Raises:
        NetworkError: Transport failure or non-success status
        OperationTimeoutError: Page did not arrive within ``timeout`` seconds
        RevisionNotFoundError: Marker missing from the page
    """
    logger.info(f"Fetching revision from {url}")

    try:
        response = await asyncio.wait_for(client.get(url), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise OperationTimeoutError(f"Revision page request exceeded {timeout}s") from e
    except httpx.TimeoutException as e:
        raise OperationTimeoutError(f"Revision page request timed out: {e}") from e
    except httpx.HTTPError as e:
        raise NetworkError(f"Failed to fetch revision page: {e}") from e

    if not response.is_success:
        raise NetworkError(
            f"Revision page returned status {response.status_code}",
            status_code=response.status_code,
        )

    revision = parse_revision_page(response.text, marker)
    logger.info(f"Remote revision: {revision}")
    return revision


async def check_for_update(
    data_dir: Path,
    revision_url: str,
    client: httpx.AsyncClient,
    marker: str = DEFAULT_MARKER,
    prefix: str = "openipf",
    timeout: float = 30.0,
) -> RevisionCheck:
    """Compare the remote revision with the one cached in the local filename.

    A missing local CSV always means an update is required and the remote
    page is not consulted. Every other failure propagates.
    """
    local_csv = find_local_csv(data_dir, prefix)
    if local_csv is None:
        logger.info(f"No local CSV found in {data_dir}; update required")
        return RevisionCheck(needs_update=True)

    remote_revision = await fetch_remote_revision(client, revision_url, marker, timeout)
    local_revision = revision_from_filename(local_csv)

    check = RevisionCheck(
        needs_update=remote_revision != local_revision,
        local_csv=local_csv,
        local_revision=local_revision,
        remote_revision=remote_revision,
    )
    logger.info(f"Revision check: {check.reason}")
    return check
