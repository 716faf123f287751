# catevents/services/ingestion.py
"""
Ingestion orchestrator, the only place pipeline errors are classified.

Flow: size check → stage body to a temp file → extract + decode into a staging
directory → derive the record id → insert into the document store → move the
media to {EVENT_PATH}/{id}.
The temp file and staging directory are removed on every exit path.
"""

import os
import re
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import AsyncIterator, Iterator, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from catevents.config import Settings
from catevents.errors import (
    ArchiveTooLargeError,
    BadRequestError,
    ConflictError,
    DocumentNotFoundError,
    DuplicateKeyError,
    ExtractError,
    HeaderError,
    IngestError,
    InternalError,
    PayloadTooLargeError,
    SchemaError,
    VersionError,
)
from catevents.schemas.event_data import EventData, EventRecord, Header
from catevents.services.bundle_decoder import decode_bundle
from catevents.services.document_store import DocumentStore
from catevents.utils.logger import get_logger

logger = get_logger(__name__)

EVENTS_COLLECTION = "events"
OBJECT_ID_LENGTH = 24
_OBJECT_ID = re.compile(r"^[0-9a-fA-F]{24}$")


def derive_object_id(declared_id: str) -> str:
    """First 24 characters of the declared id, which must be hex."""
    candidate = (declared_id or "")[:OBJECT_ID_LENGTH]
    if not _OBJECT_ID.match(candidate):
        raise BadRequestError(
            f"Event ID '{declared_id}' must start with a {OBJECT_ID_LENGTH} character hex identifier"
        )
    return candidate.lower()


@contextmanager
def scratch_space(destination_root: Path) -> Iterator[Tuple[Path, Path]]:
    """Temp file for the upload + staging directory next to the final media tree."""
    try:
        destination_root.mkdir(parents=True, exist_ok=True)
        fd, upload_name = tempfile.mkstemp(prefix="event-", suffix=".zip")
        os.close(fd)
    except OSError as e:
        logger.error(f"[INGEST] Failed to create temp file for unzipping: {e}", exc_info=True)
        raise InternalError("Failed to stage the upload") from e

    upload_path = Path(upload_name)
    try:
        staging_dir = Path(tempfile.mkdtemp(prefix=".incoming-", dir=destination_root))
    except OSError as e:
        upload_path.unlink(missing_ok=True)
        logger.error(f"[INGEST] Failed to create staging directory in {destination_root}: {e}", exc_info=True)
        raise InternalError("Failed to stage the upload") from e

    try:
        yield upload_path, staging_dir
    finally:
        upload_path.unlink(missing_ok=True)
        # Already gone when the media was published
        shutil.rmtree(staging_dir, ignore_errors=True)


class EventIngestor:
    """Turns an uploaded bundle into a persisted EventRecord."""

    def __init__(self, store: DocumentStore, settings: Settings):
        self.store = store
        self.settings = settings

    async def ingest(
        self,
        body_stream: AsyncIterator[bytes],
        content_length: Optional[int],
        destination_dir: Optional[str] = None,
        name: str = "",
        tags: Optional[list[str]] = None,
    ) -> EventRecord:
        limit = self.settings.MAX_EVENT_SIZE
        if content_length is not None and content_length >= limit:
            logger.warning(f"[INGEST] Max file size allowed {limit} but got {content_length}")
            raise PayloadTooLargeError(content_length, limit)

        destination_root = Path(destination_dir or self.settings.EVENT_PATH)

        with scratch_space(destination_root) as (upload_path, staging_dir):
            size = await self._stage_upload(body_stream, upload_path, limit)
            logger.info(f"[INGEST] Received file of size {size} bytes")

            # Unzipping and the synchronous store run off the event loop
            header, data = await run_in_threadpool(self._decode, upload_path, staging_dir)
            record = EventRecord(
                id=derive_object_id(header.id),
                name=name,
                tags=tags or [],
                data=data,
            )
            await run_in_threadpool(self._persist, record)
            await run_in_threadpool(self._publish_media, record.id, staging_dir, destination_root)

        logger.info(f"[INGEST] Successfully unpacked event {data.id}")
        return record

    async def _stage_upload(self, body_stream: AsyncIterator[bytes], upload_path: Path, limit: int) -> int:
        size = 0
        try:
            with upload_path.open("wb") as f:
                async for chunk in body_stream:
                    size += len(chunk)
                    # Bounds bodies that arrive without (or with a wrong) Content-Length
                    if size >= limit:
                        raise PayloadTooLargeError(size, limit)
                    f.write(chunk)
        except IngestError:
            raise
        except Exception as e:
            logger.error(f"[INGEST] Failed to read body into {upload_path}: {e}", exc_info=True)
            raise InternalError("Failed to read the uploaded bundle") from e
        return size

    def _decode(self, upload_path: Path, staging_dir: Path) -> Tuple[Header, EventData]:
        try:
            return decode_bundle(upload_path, staging_dir, self.settings.MAX_EXTRACTED_SIZE)
        except ArchiveTooLargeError as e:
            raise PayloadTooLargeError(e.size, e.limit) from e
        except HeaderError as e:
            raise BadRequestError(f"Failed to parse the JSON header: {e.cause}") from e
        except VersionError as e:
            raise BadRequestError(
                f"Failed to parse JSON for event {e.event_id}. "
                f"Event JSON version {e.version} is not supported."
            ) from e
        except SchemaError as e:
            raise BadRequestError(
                f"Failed to parse JSON for event {e.event_id}. Expecting format {e.version}: {e.cause}"
            ) from e
        except ExtractError as e:
            logger.error(f"[INGEST] Failed to unzip {upload_path} to {staging_dir}: {e}", exc_info=True)
            raise InternalError() from e

    def _persist(self, record: EventRecord) -> None:
        try:
            self.store.insert_unique(EVENTS_COLLECTION, record.id, record.to_document())
        except DuplicateKeyError as e:
            logger.warning(f"[INGEST] An event with this ID already exists: {record.id}")
            raise ConflictError(record.id) from e
        except SQLAlchemyError as e:
            logger.error(f"[INGEST] Failed to insert event in database: {e}", exc_info=True)
            raise InternalError() from e

    def _publish_media(self, event_id: str, staging_dir: Path, destination_root: Path) -> None:
        final_dir = destination_root / event_id
        try:
            if final_dir.exists():
                # The store accepted the id, so anything already here is left over
                logger.warning(f"[INGEST] Replacing stale media directory {final_dir}")
                shutil.rmtree(final_dir)
            os.replace(staging_dir, final_dir)
        except OSError as e:
            logger.error(f"[INGEST] Failed to move media to {final_dir}: {e}", exc_info=True)
            self._forget(event_id)
            raise InternalError() from e

    def _forget(self, event_id: str) -> None:
        try:
            self.store.delete_by_id(EVENTS_COLLECTION, event_id)
        except (DocumentNotFoundError, SQLAlchemyError) as e:
            logger.error(f"[INGEST] Could not roll back event {event_id}: {e}")
