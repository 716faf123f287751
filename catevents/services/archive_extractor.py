# catevents/services/archive_extractor.py
"""
Unpacks an event bundle ZIP into a destination directory.

Some detectors zip the event inside a wrapper directory, others do not. The
directory holding the metadata document is the "path prefix" and is stripped
from every entry, so both layouts extract to the same tree.
Every entry is checked before anything is written; one bad entry aborts the lot.
"""

import io
import os
import posixpath
import shutil
import zipfile
from pathlib import Path
from typing import BinaryIO, List, Optional, Tuple, Union

from catevents.errors import (
    ArchiveReadError,
    ArchiveTooLargeError,
    ArchiveWriteError,
    NoMetadataEntryError,
    PathTraversalError,
)
from catevents.utils.logger import get_logger

logger = get_logger(__name__)

METADATA_EXTENSION = ".json"

ArchiveSource = Union[bytes, str, os.PathLike, BinaryIO]


def open_archive(source: ArchiveSource) -> zipfile.ZipFile:
    """Open bytes, a path or a binary file object as a ZipFile."""
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)
    elif hasattr(source, "seek"):
        source.seek(0)
    try:
        return zipfile.ZipFile(source)
    except (zipfile.BadZipFile, OSError) as e:
        raise ArchiveReadError(f"Not a readable ZIP archive: {e}") from e


def find_metadata_entry(archive: zipfile.ZipFile) -> zipfile.ZipInfo:
    for info in archive.infolist():
        if not info.is_dir() and info.filename.endswith(METADATA_EXTENSION):
            return info
    raise NoMetadataEntryError(METADATA_EXTENSION)


def strip_prefix(entry_name: str, prefix: str) -> str:
    """Entry path relative to the path prefix. Entries outside the prefix are kept as-is."""
    name = entry_name.replace("\\", "/")
    if prefix and name.startswith(prefix + "/"):
        name = name[len(prefix) + 1:]
    return name


def _resolve_target(root: Path, relative: str, entry_name: str) -> Path:
    target = (root / relative).resolve()
    if target != root and not target.is_relative_to(root):
        raise PathTraversalError(entry_name)
    return target


def extract(archive_source: ArchiveSource, destination_dir: Union[str, os.PathLike],
            max_unpacked_size: Optional[int] = None) -> Tuple[str, str]:
    """
    Extract every entry with the path prefix stripped.
    Returns (metadata_entry_name, path_prefix).
    Raises ArchiveTooLargeError before writing when the declared entry sizes
    add up to more than max_unpacked_size.
    """
    destination = Path(destination_dir)
    try:
        destination.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ArchiveWriteError(f"Cannot create {destination}: {e}") from e
    root = destination.resolve()

    with open_archive(archive_source) as archive:
        metadata = find_metadata_entry(archive)
        prefix = posixpath.dirname(metadata.filename.replace("\\", "/"))
        logger.info(f"[EXTRACT] Metadata entry: {metadata.filename} | path prefix: '{prefix}'")

        planned: List[Tuple[zipfile.ZipInfo, Path]] = []
        unpacked_size = 0
        for info in archive.infolist():
            relative = strip_prefix(info.filename, prefix)
            if not relative.strip("/"):
                continue  # the wrapper directory itself
            planned.append((info, _resolve_target(root, relative, info.filename)))
            if not info.is_dir():
                unpacked_size += info.file_size

        # zipfile never yields more than an entry's declared file_size
        if max_unpacked_size is not None and unpacked_size > max_unpacked_size:
            logger.warning(f"[EXTRACT] Archive unpacks to {unpacked_size} bytes, limit {max_unpacked_size}")
            raise ArchiveTooLargeError(unpacked_size, max_unpacked_size)

        written = 0
        try:
            for info, target in planned:
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with archive.open(info, "r") as src, target.open("wb") as dst:
                    shutil.copyfileobj(src, dst)
                written += 1
        except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError) as e:
            raise ArchiveReadError(f"Corrupt archive entry: {e}") from e
        except OSError as e:
            raise ArchiveWriteError(f"Failed writing to {destination}: {e}") from e

    logger.info(f"[EXTRACT] Wrote {written} files to {destination}")
    return metadata.filename, prefix
