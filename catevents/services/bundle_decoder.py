# catevents/services/bundle_decoder.py
"""
Bundle decoding: extract the archive, then decode its metadata document.

Extraction always runs first, so media is on disk even when the document is
later rejected. The metadata entry is opened twice because a zip member stream
cannot be rewound after the header peek.
"""

import os
from typing import Optional, Tuple, Union

from catevents.errors import VersionError
from catevents.schemas.event_data import EventData, Header
from catevents.services.archive_extractor import ArchiveSource, extract, open_archive
from catevents.services.record_decoder import decode_full, decode_header_only, is_supported
from catevents.utils.logger import get_logger

logger = get_logger(__name__)


def decode_bundle(archive_source: ArchiveSource,
                  destination_dir: Union[str, os.PathLike],
                  max_unpacked_size: Optional[int] = None) -> Tuple[Header, EventData]:
    """
    Returns (header, data).
    Raises ExtractError, HeaderError, VersionError or SchemaError.
    """
    entry_name, _prefix = extract(archive_source, destination_dir, max_unpacked_size)

    with open_archive(archive_source) as archive:
        with archive.open(entry_name) as stream:
            header = decode_header_only(stream.read())

        logger.info(f"[DECODE] Event {header.id} declares version {header.event_json_version}")
        if not is_supported(header):
            raise VersionError(header.id, header.event_json_version)

        with archive.open(entry_name) as stream:
            data = decode_full(stream.read(), header=header)

    logger.info(f"[DECODE] Event {header.id}: {len(data.matches)} matches decoded")
    return header, data
