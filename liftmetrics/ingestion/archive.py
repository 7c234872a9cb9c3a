"""Extract the dataset CSV from the downloaded zip archive."""

from __future__ import annotations

import logging
import shutil
import zipfile
from pathlib import Path, PurePosixPath

from liftmetrics.errors import ArchiveError

logger = logging.getLogger(__name__)


def extract_csv(archive_path: Path, destination_dir: Path) -> Path:
    """Copy the first ``.csv`` member of ``archive_path`` into ``destination_dir``.

    Members are scanned in archive order and the extension match is
    case-insensitive. The member is written under its basename, which keeps
    the revision tag the revision gate reads on the next run.

    Args:
        archive_path: Zip file to read
        destination_dir: Directory to extract into (created if missing)

    Returns:
        Path of the extracted CSV

    Raises:
        ArchiveError: Archive cannot be opened or extracted, or contains no CSV
    """
    try:
        archive = zipfile.ZipFile(archive_path)
    except (OSError, zipfile.BadZipFile, NotImplementedError) as e:
        raise ArchiveError(f"Failed to open zip file {archive_path}: {e}") from e

    with archive:
        try:
            destination_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArchiveError(f"Failed to create extraction directory {destination_dir}: {e}") from e

        for member in archive.infolist():
            if member.is_dir():
                continue
            name = PurePosixPath(member.filename).name
            if not name.lower().endswith(".csv"):
                continue

            target = destination_dir / name
            # RuntimeError: encrypted member; NotImplementedError: unsupported compression
            try:
                with archive.open(member) as source, target.open("wb") as out:
                    shutil.copyfileobj(source, out)
            except (OSError, zipfile.BadZipFile, RuntimeError, NotImplementedError) as e:
                if target.is_file():
                    target.unlink()
                raise ArchiveError(f"Failed to extract {member.filename}: {e}") from e

            logger.info(f"Extracted {member.filename} to {target}")
            return target

    raise ArchiveError(f"No CSV file found in zip {archive_path}")
