"""Archive downloader.

Small archives are buffered in memory and written in one pass; anything whose
declared size exceeds ``STREAMING_THRESHOLD_BYTES`` is streamed straight to
disk so peak memory stays bounded. Both paths write identical bytes.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

import httpx

from liftmetrics.errors import NetworkError, OperationTimeoutError, StorageError

logger = logging.getLogger(__name__)

# 2 GiB
STREAMING_THRESHOLD_BYTES = 2 * 1024 * 1024 * 1024
CHUNK_SIZE = 1024 * 1024


@dataclass
class DownloadResult:
    """What a download produced."""

    path: Path
    bytes_written: int
    streamed: bool
    content_length: int | None = None


def remove_existing_csv_files(directory: Path) -> list[Path]:
    """Delete every ``*.csv`` directly inside ``directory``.

    Returns:
        The paths that were removed
    """
    removed = []
    if not directory.is_dir():
        return removed

    for candidate in directory.iterdir():
        if candidate.is_file() and candidate.suffix.lower() == ".csv":
            candidate.unlink()
            logger.info(f"Removed existing CSV file: {candidate}")
            removed.append(candidate)
    return removed


def _declared_length(response: httpx.Response) -> int | None:
    raw = response.headers.get("Content-Length")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


async def _stream_to_file(response: httpx.Response, destination: Path) -> int:
    written = 0
    with destination.open("wb") as out:
        async for chunk in response.aiter_bytes(CHUNK_SIZE):
            out.write(chunk)
            written += len(chunk)
    return written


async def _fetch(
    client: httpx.AsyncClient,
    url: str,
    destination: Path,
    streaming_threshold: int,
) -> DownloadResult:
    async with client.stream("GET", url) as response:
        if not response.is_success:
            logger.warning(f"Received non-OK status: {response.status_code}")
            raise NetworkError(
                f"bad status: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        content_length = _declared_length(response)

        if content_length is not None and content_length > streaming_threshold:
            logger.info(f"File size ({content_length} bytes) exceeds threshold. Using streaming download.")
            written = await _stream_to_file(response, destination)
            logger.info(f"Large file download completed. Bytes written: {written}")
            return DownloadResult(destination, written, streamed=True, content_length=content_length)

        logger.info(f"File size: {content_length} bytes. Downloading into memory.")
        body = await response.aread()
        destination.write_bytes(body)
        return DownloadResult(destination, len(body), streamed=False, content_length=content_length)


async def download_file(
    client: httpx.AsyncClient,
    url: str,
    destination: Path,
    timeout: float | None = None,
    streaming_threshold: int = STREAMING_THRESHOLD_BYTES,
) -> DownloadResult:
    """Download ``url`` to ``destination``.

    Existing CSV files next to ``destination`` are removed first so later
    stages never see a stale CSV beside a fresh archive.

    Args:
        client: HTTP client used for the request
        url: Archive URL
        destination: File path for the archive
        timeout: Overall deadline in seconds (None = no deadline)
        streaming_threshold: Declared size above which the body is streamed

    Raises:
        NetworkError: Transport failure or non-success status
        OperationTimeoutError: Deadline exceeded; the partial file is removed
        StorageError: The archive could not be written locally
    """
    logger.info(f"Starting download from {url} to {destination}")

    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        remove_existing_csv_files(destination.parent)
    except OSError as e:
        raise StorageError(f"Failed to prepare download directory {destination.parent}: {e}") from e

    try:
        result = await asyncio.wait_for(
            _fetch(client, url, destination, streaming_threshold), timeout=timeout
        )
    except asyncio.TimeoutError as e:
        destination.unlink(missing_ok=True)
        raise OperationTimeoutError(f"Download exceeded {timeout}s") from e
    except httpx.TimeoutException as e:
        destination.unlink(missing_ok=True)
        raise OperationTimeoutError(f"Download timed out: {e}") from e
    except httpx.HTTPError as e:
        destination.unlink(missing_ok=True)
        raise NetworkError(f"Failed to download {url}: {e}") from e
    except OSError as e:
        if destination.is_file():
            destination.unlink()
        raise StorageError(f"Failed to write {destination}: {e}") from e
    except asyncio.CancelledError:
        destination.unlink(missing_ok=True)
        raise

    logger.info(f"Download completed successfully ({result.bytes_written} bytes)")
    return result
