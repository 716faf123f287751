# catevents/services/reference_rewriter.py
"""
Read-path helper: turns the relative media paths of a record into absolute URLs.
Refs are presentation only. Call this on records being returned, never before
they are stored.
"""

import posixpath
from dataclasses import dataclass
from urllib.parse import urlsplit

from catevents.schemas.event_data import EventRecord


@dataclass(frozen=True)
class RequestOrigin:
    scheme: str     # from configuration
    host: str       # from the inbound request
    path: str       # request path the media paths are relative to

    @classmethod
    def from_url(cls, url: str) -> "RequestOrigin":
        parts = urlsplit(url)
        return cls(scheme=parts.scheme, host=parts.netloc, path=parts.path)

    def reverse_url(self, relative_path: str) -> str:
        joined = posixpath.normpath(f"/{self.path}/{relative_path}")
        return f"{self.scheme}://{self.host}/{joined.strip('/')}"


def fill_references(record: EventRecord, origin: RequestOrigin) -> EventRecord:
    """Set `ref` on every match and step of the record, in place."""
    for match in record.data.matches:
        match.ref = origin.reverse_url(match.path)
        for step in match.steps:
            step.ref = origin.reverse_url(step.path)
    return record
