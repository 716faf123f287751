# catevents/services/record_decoder.py
"""
Versioned decoding of the event metadata document.

The header is always decoded on its own first: running a full decoder for the
wrong schema version yields plausible but wrong records instead of an error.
"""

import json
import re
from typing import Optional, Type

from pydantic import ValidationError

from catevents.errors import HeaderError, SchemaError, VersionError
from catevents.schemas.event_data import EventData, Header
from catevents.utils.logger import get_logger

logger = get_logger(__name__)

_JSON = json.JSONDecoder()
_WHITESPACE = re.compile(r"[ \t\n\r]*")

# Schema version → model able to decode it
DECODERS: dict[str, Type[EventData]] = {
    "1.0": EventData,
}


def is_supported(header: Header) -> bool:
    return header.event_json_version in DECODERS


def _load_document(raw: bytes) -> dict:
    document = json.loads(raw)
    if not isinstance(document, dict):
        raise ValueError(f"expected a JSON object, got {type(document).__name__}")
    return document


def _skip_whitespace(text: str, pos: int) -> int:
    return _WHITESPACE.match(text, pos).end()


def _scan_header_fields(raw: bytes) -> dict:
    """
    Read top-level members in order until every header field has been seen.
    A member that fails to parse ends the scan, unless it is the first one.
    """
    text = raw.decode("utf-8-sig") if isinstance(raw, (bytes, bytearray)) else raw
    pos = _skip_whitespace(text, 0)
    if not text.startswith("{", pos):
        raise ValueError("expected a JSON object")
    pos += 1

    wanted = set(Header.model_fields)
    found: dict = {}
    members = 0
    while not wanted.issubset(found):
        pos = _skip_whitespace(text, pos)
        if text.startswith("}", pos):
            break
        try:
            key, pos = _JSON.raw_decode(text, pos)
            pos = _skip_whitespace(text, pos)
            if not isinstance(key, str) or not text.startswith(":", pos):
                raise ValueError(f"malformed object member at offset {pos}")
            value, pos = _JSON.raw_decode(text, _skip_whitespace(text, pos + 1))
        except ValueError:
            if not members:
                raise
            logger.debug(f"[DECODE] Body stops parsing after {members} members, header scan ends")
            break
        members += 1
        if key in wanted:
            found[key] = value

        pos = _skip_whitespace(text, pos)
        if not text.startswith(",", pos):
            break
        pos += 1
    return found


def decode_header_only(raw: bytes) -> Header:
    """
    Decode only the header fields. Members after them are never parsed, so a
    body that is malformed further on still yields its header.
    """
    try:
        return Header.model_validate(_scan_header_fields(raw))
    except (ValueError, ValidationError) as e:
        # json.JSONDecodeError and UnicodeDecodeError are both ValueErrors
        logger.warning(f"[DECODE] Failed to decode event header: {e}")
        raise HeaderError(e) from e


def decode_full(raw: bytes, header: Optional[Header] = None) -> EventData:
    """
    Decode the whole document with the model registered for its version.
    Raises HeaderError, VersionError or SchemaError.
    """
    if header is None:
        header = decode_header_only(raw)
    if not is_supported(header):
        logger.warning(f"[DECODE] Unsupported version for event {header.id}: {header.event_json_version}")
        raise VersionError(header.id, header.event_json_version)

    model = DECODERS[header.event_json_version]
    try:
        return model.model_validate(_load_document(raw))
    except (ValueError, ValidationError) as e:
        logger.warning(
            f"[DECODE] Failed to decode JSON (v{header.event_json_version}) for event {header.id}: {e}"
        )
        raise SchemaError(header.id, header.event_json_version, e) from e
