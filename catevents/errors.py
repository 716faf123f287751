# catevents/errors.py
"""
Error taxonomy for the bundle ingestion pipeline.

Two layers:
  BundleError: raised by the extractor / decoders, never shown to callers as-is.
  IngestError: caller-facing, raised only by the ingestion orchestrator,
               each subclass carries the HTTP status it maps to.
Store errors (DuplicateKeyError, DocumentNotFoundError) come from the document store.
"""

from typing import Optional


# ── Pipeline errors ──────────────────────────────────────────────────────────
class BundleError(Exception):
    """Base class for everything the bundle pipeline can raise."""


class TimestampFormatError(ValueError):
    """A timestamp token matched none of the accepted layouts."""

    def __init__(self, token: str):
        super().__init__(f"Unrecognised event timestamp: {token!r}")
        self.token = token


class ExtractError(BundleError):
    """Archive could not be unpacked to the destination directory."""


class NoMetadataEntryError(ExtractError):
    def __init__(self, extension: str):
        super().__init__(f"Archive contains no '{extension}' metadata document")
        self.extension = extension


class PathTraversalError(ExtractError):
    def __init__(self, entry_name: str):
        super().__init__(f"Archive entry escapes the destination directory: {entry_name}")
        self.entry_name = entry_name


class ArchiveReadError(ExtractError):
    """The upload is not a readable ZIP archive."""


class ArchiveWriteError(ExtractError):
    """Writing an extracted entry to disk failed."""


class ArchiveTooLargeError(ExtractError):
    """The entries of the archive unpack to more than the allowed total."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Archive unpacks to {size} bytes, the limit is {limit} bytes")
        self.size = size
        self.limit = limit


class HeaderError(BundleError):
    """The metadata document header could not be parsed."""

    def __init__(self, cause: Exception):
        super().__init__(f"Failed to parse the event header: {cause}")
        self.cause = cause


class VersionError(BundleError):
    """The header declares a schema version this service cannot decode."""

    def __init__(self, event_id: str, version: Optional[str]):
        super().__init__(f"Event JSON version {version!r} is not supported (event {event_id})")
        self.event_id = event_id
        self.version = version


class SchemaError(BundleError):
    """The header is supported but the full document failed validation."""

    def __init__(self, event_id: str, version: Optional[str], cause: Exception):
        super().__init__(f"Failed to decode event {event_id} as version {version}: {cause}")
        self.event_id = event_id
        self.version = version
        self.cause = cause


# ── Document store errors ────────────────────────────────────────────────────
class DuplicateKeyError(Exception):
    def __init__(self, collection: str, document_id: str):
        super().__init__(f"{collection}/{document_id} already exists")
        self.collection = collection
        self.document_id = document_id


class DocumentNotFoundError(Exception):
    def __init__(self, collection: str, document_id: str):
        super().__init__(f"{collection}/{document_id} not found")
        self.collection = collection
        self.document_id = document_id


# ── Caller-facing errors ─────────────────────────────────────────────────────
class IngestError(Exception):
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class PayloadTooLargeError(IngestError):
    status_code = 413

    def __init__(self, size: int, limit: int):
        super().__init__(f"Max file size allowed {limit} bytes but got {size} bytes")
        self.size = size
        self.limit = limit


class BadRequestError(IngestError):
    status_code = 400


class ConflictError(IngestError):
    status_code = 409

    def __init__(self, event_id: str):
        super().__init__(f"An event with this ID already exists: {event_id}")
        self.event_id = event_id


class InternalError(IngestError):
    status_code = 500
