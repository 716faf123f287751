# catevents/schemas/event_data.py
"""
Event metadata document, schema version 1.0.

The detector writes the header fields (id, event_json_version, ...) at the top
level of the document, so EventData extends Header. `ref` on Match and Step is
derived at read time and is never accepted from input nor written to the store.
"""

from datetime import datetime
from pathlib import PurePosixPath
from typing import Annotated, Any, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, PlainSerializer, field_validator

from catevents.errors import TimestampFormatError
from catevents.services.timestamps import format_event_time, parse_event_time


def _coerce_event_time(value: Any) -> datetime:
    if isinstance(value, str):
        return parse_event_time(value)
    # Aware datetimes come from already decoded records; numbers are not epochs here
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value
    raise TimestampFormatError(repr(value))


def _check_relative_path(value: str) -> str:
    normalized = value.replace("\\", "/")
    parts = PurePosixPath(normalized).parts
    if normalized.startswith("/") or (parts and parts[0].endswith(":")):
        raise ValueError(f"path must be relative: {value!r}")
    if ".." in parts:
        raise ValueError(f"path must not leave the event directory: {value!r}")
    return value


EventTime = Annotated[
    datetime,
    BeforeValidator(_coerce_event_time),
    PlainSerializer(format_event_time, return_type=str, when_used="json"),
]
RelativePath = Annotated[str, AfterValidator(_check_relative_path)]


class Header(BaseModel):
    id: str = ""
    event_json_version: Optional[str] = None
    version: str = ""
    git_hash: str = ""
    git_hash_short: str = ""
    git_tainted: int = 0

    class Config:
        extra = "ignore"


class HaarMatcherSettings(BaseModel):
    cascade: str = ""
    eq_histogram: int = 0
    in_direction: str = ""
    min_size_height: int = 0
    min_size_width: int = 0
    no_match_is_fail: int = 0
    prey_method: str = ""
    prey_steps: int = 0

    class Config:
        extra = "ignore"


class DetectorSettings(BaseModel):
    haar_matcher: HaarMatcherSettings = HaarMatcherSettings()
    lockout_error: int = 0
    lockout_error_delay: float = 0.0
    lockout_method: int = 0
    lockout_time: int = 0
    matcher: str = ""
    matchtime: int = 0
    no_final_decision: int = 0
    ok_matches_needed: int = 0

    class Config:
        extra = "ignore"


class _Referenced(BaseModel):
    ref: Optional[str] = None

    @field_validator("ref", mode="before")
    @classmethod
    def _discard_ref(cls, value):
        return None


class Step(_Referenced):
    """One pipeline stage of a single match attempt."""
    active: int = 0
    description: str = ""
    filename: str = ""
    name: str = ""
    path: RelativePath = ""

    class Config:
        extra = "ignore"


class Match(_Referenced):
    """One detection attempt and the image it was made on."""
    id: str = ""
    description: str = ""
    direction: str = ""
    filename: str = ""
    path: RelativePath = ""
    result: float = 0.0
    success: int = 0
    time: Optional[EventTime] = None
    is_false_positive: bool = False
    step_count: int = 0
    steps: list[Step] = []

    class Config:
        extra = "ignore"


class EventData(Header):
    state: str = ""
    prev_state: str = ""
    catcierge_type: str = ""
    description: str = ""
    start: Optional[EventTime] = None
    end: Optional[EventTime] = None
    time_generated: Optional[EventTime] = None
    timezone: str = ""
    timezone_utc_offset: str = ""
    rootpath: str = ""
    match_group_count: int = 0
    match_group_direction: str = ""
    match_group_max_count: int = 0
    match_group_success: int = 0
    matches: list[Match] = []
    settings: DetectorSettings = DetectorSettings()


# Derived fields stripped before a record is written to the store
_DERIVED_FIELDS = {
    "data": {
        "matches": {
            "__all__": {
                "ref": True,
                "steps": {"__all__": {"ref": True}},
            }
        }
    }
}


class EventRecord(BaseModel):
    """The persisted unit: one ingested bundle."""
    id: str
    name: str = ""
    tags: list[str] = []
    missing: bool = False
    data: EventData

    def to_document(self) -> dict:
        return self.model_dump(mode="json", exclude=_DERIVED_FIELDS)

    @classmethod
    def from_document(cls, document: dict) -> "EventRecord":
        return cls.model_validate(document)
